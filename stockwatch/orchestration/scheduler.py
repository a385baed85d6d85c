"""
WaveScheduler: rate-limited wave execution of independent tasks.

Tasks are ordered by descending priority and started in waves of at most
`max_concurrency`. Every member of a wave runs on a thread pool and the
scheduler waits until all of them settle before pausing `batch_delay`
seconds and starting the next wave, so upstream endpoints never see more
than `max_concurrency` requests in flight.

Cancellation is cooperative: cancel() rejects every task that has not
started with Cancelled; running tasks finish on their own (their work is
expected to check the shared cancel event at its suspension points).
"""
from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional

from ..shared.defaults import MAX_CONCURRENCY, BATCH_DELAY
from ..shared.errors import Cancelled
from ..shared.types import ProgressSnapshot

logger = logging.getLogger(__name__)

TaskStatus = Literal["pending", "running", "completed", "failed", "cancelled"]
ProgressCallback = Callable[[ProgressSnapshot], None]


@dataclass
class Task:
    """A unit of work owned by the scheduler that accepted it."""

    id: str
    work: Callable[[], Any]
    priority: int = 0
    status: TaskStatus = "pending"
    future: Future = field(default_factory=Future)


@dataclass(frozen=True)
class TaskFailure:
    task_id: str
    error: BaseException


@dataclass
class SchedulerResult:
    """Settled tasks of one run: results by task id, failures in settlement order."""

    results: Dict[str, Any] = field(default_factory=dict)
    errors: List[TaskFailure] = field(default_factory=list)
    cancelled: bool = False


class WaveScheduler:
    """
    Wave-based task scheduler with progress and cooperative cancellation.

    Counters are guarded by a lock; on_progress is called from the thread
    running run(), once per settlement, in settlement order.
    """

    def __init__(
        self,
        max_concurrency: int = MAX_CONCURRENCY,
        batch_delay: float = BATCH_DELAY,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize scheduler.

        Args:
            max_concurrency: Tasks started together in one wave (>= 1)
            batch_delay: Seconds to pause between waves (>= 0)
            on_progress: Called with a ProgressSnapshot after each settlement
            cancel_event: Shared cancellation token (a fresh one if omitted)
        """
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        if batch_delay < 0:
            raise ValueError(f"batch_delay must be >= 0, got {batch_delay}")

        self.max_concurrency = max_concurrency
        self.batch_delay = batch_delay
        self.on_progress = on_progress
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

        self._lock = threading.Lock()
        self._pending: List[Task] = []
        self._ids = itertools.count()
        self._started = False
        self._total = 0
        self._completed = 0
        self._failed = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def progress(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot.from_counts(self._total, self._completed, self._failed)

    def submit(self, work: Callable[[], Any], priority: int = 0, task_id: Optional[str] = None) -> Future:
        """
        Queue a callable for the next run().

        Returns:
            Future resolving with the callable's return value or exception,
            or with Cancelled if the task is rejected before it starts

        Raises:
            RuntimeError: If run() has already started
        """
        with self._lock:
            if self._started:
                raise RuntimeError("Cannot submit tasks after run() has started")
            task = Task(
                id=task_id if task_id is not None else f"task-{next(self._ids)}",
                work=work,
                priority=priority,
            )
            self._pending.append(task)
            # Fixed at submission; cancel() never shrinks it
            self._total += 1
        return task.future

    def cancel(self) -> None:
        """Set the cancel event and reject every task that has not started."""
        self.cancel_event.set()
        self._reject_pending()

    def _reject_pending(self) -> int:
        with self._lock:
            rejected, self._pending = self._pending, []
        for task in rejected:
            task.status = "cancelled"
            if not task.future.done():
                task.future.set_exception(Cancelled(code=task.id))
        if rejected:
            logger.debug(f"Rejected {len(rejected)} pending task(s) after cancel")
        return len(rejected)

    def _next_wave(self) -> List[Task]:
        with self._lock:
            wave = self._pending[:self.max_concurrency]
            self._pending = self._pending[self.max_concurrency:]
            return wave

    def _has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def _settle(self, task: Task, ok: bool) -> None:
        with self._lock:
            if ok:
                self._completed += 1
            else:
                self._failed += 1
            snapshot = ProgressSnapshot.from_counts(self._total, self._completed, self._failed)
        if self.on_progress is not None:
            try:
                self.on_progress(snapshot)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def run(self) -> SchedulerResult:
        """
        Execute all queued tasks wave by wave.

        Returns:
            SchedulerResult with every settled task; tasks rejected by
            cancellation appear in neither results nor errors

        Raises:
            RuntimeError: If run() is called twice
        """
        with self._lock:
            if self._started:
                raise RuntimeError("run() can only be called once per scheduler")
            self._started = True
            # sorted() is stable: equal priorities keep submission order
            self._pending = sorted(self._pending, key=lambda t: -t.priority)
            self._completed = 0
            self._failed = 0
            total = self._total

        result = SchedulerResult(cancelled=self.cancelled)
        if total == 0 or result.cancelled:
            self._reject_pending()
            return result

        start_time = time.perf_counter()
        logger.debug(
            f"Scheduler starting: {total} tasks, {self.max_concurrency} per wave, "
            f"{self.batch_delay:.1f}s between waves"
        )

        wave_idx = 0
        with ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="wave") as executor:
            while True:
                if self.cancelled:
                    self._reject_pending()
                    break
                wave = self._next_wave()
                if not wave:
                    break

                future_to_task: Dict[Future, Task] = {}
                for task in wave:
                    if not task.future.set_running_or_notify_cancel():
                        # Caller cancelled this task's future before it started
                        task.status = "cancelled"
                        continue
                    task.status = "running"
                    future_to_task[executor.submit(task.work)] = task

                for future in as_completed(future_to_task):
                    task = future_to_task[future]
                    error = future.exception()
                    if error is None:
                        value = future.result()
                        task.status = "completed"
                        task.future.set_result(value)
                        result.results[task.id] = value
                        self._settle(task, ok=True)
                    else:
                        task.status = "failed"
                        task.future.set_exception(error)
                        result.errors.append(TaskFailure(task.id, error))
                        self._settle(task, ok=False)
                        logger.debug(f"Task {task.id} failed: {type(error).__name__}: {error}")

                logger.debug(f"Wave {wave_idx}: {len(future_to_task)} task(s) settled")
                wave_idx += 1

                if self._has_pending() and not self.cancelled and self.batch_delay > 0:
                    # Returns early when cancel() sets the event
                    self.cancel_event.wait(self.batch_delay)

        result.cancelled = self.cancelled
        progress = self.progress
        logger.debug(
            f"Scheduler finished in {time.perf_counter() - start_time:.1f}s: "
            f"{progress.completed} completed, {progress.failed} failed"
            + (" (cancelled)" if result.cancelled else "")
        )
        return result

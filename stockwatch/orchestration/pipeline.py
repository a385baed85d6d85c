"""
Batch orchestration: chunked quote fetches feeding wave-scheduled analysis.

Symbols are split into chunks (one quote request each). Chunks run
sequentially; inside a chunk every quoted symbol becomes one task on a fresh
WaveScheduler. Progress is aggregated across chunks against the grand
total, and one cancel event is shared by the chunk loop, every scheduler
and every task.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..data.sources import DataSource
from ..shared.config import AnalysisConfig
from ..shared.types import (
    AnalysisOutcome, AnalysisResult, KLinePeriod, PriceFilter,
    ProgressSnapshot, Quote, SymbolError,
)
from .scheduler import WaveScheduler
from .tasks import analyze_symbol

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]

QUOTE_FETCH_FAILED = "quote fetch failed"


def chunked(symbols: Sequence[str], size: Optional[int]) -> List[List[str]]:
    """Split symbols into consecutive chunks; size None means one chunk."""
    symbols = list(symbols)
    if not symbols:
        return []
    if size is None:
        return [symbols]
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")
    return [symbols[i:i + size] for i in range(0, len(symbols), size)]


def _dedupe(symbols: Sequence[str]) -> List[str]:
    seen = set()
    unique = []
    for s in symbols:
        if s not in seen:
            seen.add(s)
            unique.append(s)
    return unique


class BatchAnalyzer:
    """
    Analyze a list of symbols against a DataSource.

    One instance runs one analysis at a time; cancel() may be called from
    any thread while analyze() is running. A cancel request applies to the
    current run, or to the next one when nothing is running, and is then
    cleared so the instance can be reused. A cancel_event passed in by the
    caller is never cleared here.
    """

    def __init__(
        self,
        source: DataSource,
        config: Optional[AnalysisConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.source = source
        self.config = config or AnalysisConfig()
        self.on_progress = on_progress
        self._owns_event = cancel_event is None
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

        self._lock = threading.Lock()
        self._scheduler: Optional[WaveScheduler] = None
        self._total = 0
        self._base_completed = 0  # Settled in finished chunks (or outside a scheduler)
        self._base_failed = 0
        self._live_completed = 0  # Current chunk's scheduler counters
        self._live_failed = 0

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    @property
    def progress(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot_locked()

    def cancel(self) -> None:
        """Stop starting new work; running tasks finish, partial results are returned."""
        self.cancel_event.set()
        with self._lock:
            scheduler = self._scheduler
        if scheduler is not None:
            scheduler.cancel()
        logger.info("Cancellation requested")

    def _snapshot_locked(self) -> ProgressSnapshot:
        return ProgressSnapshot.from_counts(
            self._total,
            self._base_completed + self._live_completed,
            self._base_failed + self._live_failed,
        )

    def _emit(self, snapshot: ProgressSnapshot) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(snapshot)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    def _add_base(self, completed: int = 0, failed: int = 0) -> None:
        if completed == 0 and failed == 0:
            return
        with self._lock:
            self._base_completed += completed
            self._base_failed += failed
            snapshot = self._snapshot_locked()
        self._emit(snapshot)

    def _on_chunk_progress(self, chunk_progress: ProgressSnapshot) -> None:
        with self._lock:
            self._live_completed = chunk_progress.completed
            self._live_failed = chunk_progress.failed
            snapshot = self._snapshot_locked()
        self._emit(snapshot)

    def _fold_live(self) -> None:
        # Sum stays the same, so no snapshot is emitted
        with self._lock:
            self._base_completed += self._live_completed
            self._base_failed += self._live_failed
            self._live_completed = 0
            self._live_failed = 0
            self._scheduler = None

    def _fetch_quotes(self, chunk: List[str]) -> Dict[str, Quote]:
        try:
            quotes = self.source.fetch_quotes(chunk) or []
        except Exception as e:
            logger.warning(f"Quote fetch failed for chunk of {len(chunk)}: {e}")
            return {}
        return {q.code: q for q in quotes}

    def _run_chunk(
        self,
        chunk: List[str],
        period: KLinePeriod,
        count: int,
        price_filter: Optional[PriceFilter],
        result: AnalysisResult,
    ) -> None:
        quotes = self._fetch_quotes(chunk)

        if not quotes:
            for code in chunk:
                outcome = SymbolError(code=code, name=code, error=QUOTE_FETCH_FAILED)
                result.results.append(outcome)
                result.errors.append((code, outcome.error))
            self._add_base(failed=len(chunk))
            return

        if self.cancelled:
            return

        scheduler = WaveScheduler(
            max_concurrency=self.config.max_concurrency,
            batch_delay=self.config.batch_delay,
            on_progress=self._on_chunk_progress,
            cancel_event=self.cancel_event,
        )

        outcomes: Dict[str, AnalysisOutcome] = {}
        scheduled: Dict[str, Quote] = {}
        skipped = 0
        missing = 0
        for code in chunk:
            quote = quotes.get(code)
            if quote is None:
                outcomes[code] = SymbolError(code=code, name=code, error=QUOTE_FETCH_FAILED)
                missing += 1
                continue
            if price_filter is not None and not price_filter.accepts(quote.price):
                result.skipped.append(code)
                skipped += 1
                continue
            scheduled[code] = quote
            scheduler.submit(
                self._task_for(quote, period, count),
                task_id=code,
            )

        self._add_base(completed=skipped, failed=missing)

        with self._lock:
            self._scheduler = scheduler
        # cancel() may have run between the check above and registration
        if self.cancelled:
            scheduler.cancel()

        sched_result = scheduler.run()
        self._fold_live()

        for code, record in sched_result.results.items():
            outcomes[code] = record
        for failure in sched_result.errors:
            quote = scheduled[failure.task_id]
            message = str(failure.error) or type(failure.error).__name__
            outcomes[failure.task_id] = SymbolError.from_quote(quote, message)

        for code in chunk:
            outcome = outcomes.get(code)
            if outcome is None:
                continue  # Skipped by price or never started
            result.results.append(outcome)
            if isinstance(outcome, SymbolError):
                result.errors.append((code, outcome.error))

    def _task_for(self, quote: Quote, period: KLinePeriod, count: int):
        def work():
            return analyze_symbol(
                self.source, quote, period, count,
                config=self.config, cancel_event=self.cancel_event,
            )
        return work

    def analyze(
        self,
        symbols: Sequence[str],
        period: Union[KLinePeriod, str] = KLinePeriod.DAY,
        count: Optional[int] = None,
        price_filter: Optional[PriceFilter] = None,
    ) -> AnalysisResult:
        """
        Run the full analysis.

        Args:
            symbols: Instrument codes (duplicates are analyzed once)
            period: Bar period for the per-symbol series
            count: Bars per series (default: config.count)
            price_filter: Optional price band applied to quotes

        Returns:
            AnalysisResult; with cancelled=True it holds only what settled
            before cancellation took effect

        Raises:
            ValueError: On an unknown period or a non-positive count
        """
        period = KLinePeriod.parse(period)
        count = self.config.count if count is None else count
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")

        unique = _dedupe(symbols)
        if len(unique) != len(symbols):
            logger.warning(f"Dropped {len(symbols) - len(unique)} duplicate symbol(s)")

        with self._lock:
            self._total = len(unique)
            self._base_completed = self._base_failed = 0
            self._live_completed = self._live_failed = 0
            self._scheduler = None

        result = AnalysisResult()
        if not unique:
            self._consume_cancel()
            return result

        chunks = chunked(unique, self.config.chunk_size)
        start_time = time.perf_counter()
        logger.info(
            f"Analyzing {len(unique)} symbols ({period.value}, {count} bars) "
            f"in {len(chunks)} chunk(s)"
        )
        self._emit(self.progress)

        for chunk_idx, chunk in enumerate(chunks):
            if self.cancelled:
                break
            chunk_start = time.perf_counter()
            self._run_chunk(chunk, period, count, price_filter, result)
            progress = self.progress
            logger.info(
                f"Chunk {chunk_idx + 1}/{len(chunks)} done in {time.perf_counter() - chunk_start:.1f}s "
                f"[{progress.settled}/{progress.total}, {progress.failed} failed]"
            )

        result.cancelled = self.cancelled
        progress = self.progress
        logger.info(
            f"Analysis {'cancelled' if result.cancelled else 'complete'} after "
            f"{time.perf_counter() - start_time:.1f}s: {progress.completed} completed, "
            f"{progress.failed} failed, {len(result.skipped)} skipped by price"
        )
        self._consume_cancel()
        return result

    def _consume_cancel(self) -> None:
        if self._owns_event:
            self.cancel_event.clear()


@dataclass
class AnalysisHandle:
    """A running background analysis: its future plus a way to cancel it."""

    future: Future
    analyzer: BatchAnalyzer

    def cancel(self) -> None:
        self.analyzer.cancel()

    @property
    def progress(self) -> ProgressSnapshot:
        return self.analyzer.progress

    def result(self, timeout: Optional[float] = None) -> AnalysisResult:
        return self.future.result(timeout=timeout)

    def done(self) -> bool:
        return self.future.done()


def analyze(
    source: DataSource,
    symbols: Sequence[str],
    period: Union[KLinePeriod, str] = KLinePeriod.DAY,
    count: Optional[int] = None,
    config: Optional[AnalysisConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
    price_filter: Optional[PriceFilter] = None,
) -> AnalysisHandle:
    """
    Start an analysis on a background thread.

    Argument errors surface immediately; everything else is reported
    through the returned handle's future.
    """
    period = KLinePeriod.parse(period)
    if count is not None and count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    analyzer = BatchAnalyzer(source, config=config, on_progress=on_progress)
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="analysis")
    future = executor.submit(analyzer.analyze, symbols, period, count, price_filter)
    executor.shutdown(wait=False)
    return AnalysisHandle(future=future, analyzer=analyzer)

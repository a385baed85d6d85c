"""
Orchestration layer: wave scheduling and chunked batch analysis.
"""

from .scheduler import WaveScheduler, SchedulerResult, TaskFailure, Task
from .tasks import analyze_symbol, build_record
from .pipeline import BatchAnalyzer, AnalysisHandle, analyze, chunked

__all__ = [
    "WaveScheduler",
    "SchedulerResult",
    "TaskFailure",
    "Task",
    "analyze_symbol",
    "build_record",
    "BatchAnalyzer",
    "AnalysisHandle",
    "analyze",
    "chunked",
]

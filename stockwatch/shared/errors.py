"""
Exception hierarchy for per-symbol analysis failures.

Errors stay local to the smallest unit of work: a failed fetch or
computation becomes a SymbolError outcome for that one symbol and never
aborts its siblings. Only invalid arguments (ValueError) escape a run.
"""


class AnalysisError(Exception):
    """Base class for failures recorded against a single symbol."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class Cancelled(AnalysisError):
    """Raised for work rejected or interrupted by a cancel request."""

    def __init__(self, message: str = "cancelled", code: str = ""):
        super().__init__(message, code)


class QuoteFetchFailed(AnalysisError):
    pass


class DetailFetchFailed(AnalysisError):
    pass


class SeriesFetchFailed(AnalysisError):
    pass


class InsufficientSeries(SeriesFetchFailed):
    """The data source returned no bars for the requested series."""


class ComputeError(AnalysisError):
    """Indicator or pattern computation raised on otherwise valid data."""

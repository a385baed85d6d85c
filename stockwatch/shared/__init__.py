"""
Shared types, defaults and configuration for the analysis engine.

This module provides:
- Market data records (Bar, Quote, Detail) and the OHLCV frame helpers
- Progress snapshots and the per-symbol outcome types
- The exception hierarchy for per-symbol failures
- AnalysisConfig and its YAML loader
"""
from .types import (
    Bar, Quote, Detail, KLinePeriod, ProgressSnapshot, PriceFilter,
    AnalysisRecord, SymbolError, AnalysisOutcome, AnalysisResult,
    bars_to_frame, as_frame, results_to_frame,
)
from .errors import (
    AnalysisError, Cancelled, QuoteFetchFailed, DetailFetchFailed,
    SeriesFetchFailed, InsufficientSeries, ComputeError,
)
from .config import AnalysisConfig, ConsolidationParams, SurgeParams
from .config_loader import load_config_from_yaml, config_to_dict

__all__ = [
    'Bar', 'Quote', 'Detail', 'KLinePeriod', 'ProgressSnapshot', 'PriceFilter',
    'AnalysisRecord', 'SymbolError', 'AnalysisOutcome', 'AnalysisResult',
    'bars_to_frame', 'as_frame', 'results_to_frame',
    'AnalysisError', 'Cancelled', 'QuoteFetchFailed', 'DetailFetchFailed',
    'SeriesFetchFailed', 'InsufficientSeries', 'ComputeError',
    'AnalysisConfig', 'ConsolidationParams', 'SurgeParams',
    'load_config_from_yaml', 'config_to_dict',
]

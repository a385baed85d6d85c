"""
Market data sources.

Provides the DataSource interface the orchestrator depends on and a
Yahoo Finance implementation.
"""
from .sources import DataSource
from .yahoo import YahooDataSource, normalize_ohlcv, aggregate_yearly

__all__ = [
    'DataSource',
    'YahooDataSource',
    'normalize_ohlcv',
    'aggregate_yearly',
]

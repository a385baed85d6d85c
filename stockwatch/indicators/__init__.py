"""
Indicator calculation module.

Provides the technical indicators reported per symbol:
- Moving averages (MA, EMA) and MACD
- KDJ stochastic oscillator and RSI
- Latest-value summaries (window stats, drawdown, MA deviation, recent changes)

All functions are pure: OHLCV frame (or Bars) in, index-aligned series out.
"""
from .technical import (
    calculate_ma,
    calculate_ema,
    calculate_macd,
    calculate_rsv,
    calculate_kdj,
    calculate_rsi,
    calculate_all_ma,
    calculate_all_rsi,
    calculate_all,
)
from .summary import (
    last_finite,
    window_stats,
    drawdown_from_high,
    latest_kdj,
    latest_mas,
    ma_deviation_percents,
    recent_change_percents,
)

__all__ = [
    'calculate_ma',
    'calculate_ema',
    'calculate_macd',
    'calculate_rsv',
    'calculate_kdj',
    'calculate_rsi',
    'calculate_all_ma',
    'calculate_all_rsi',
    'calculate_all',
    'last_finite',
    'window_stats',
    'drawdown_from_high',
    'latest_kdj',
    'latest_mas',
    'ma_deviation_percents',
    'recent_change_percents',
]

"""
Centralized default values for indicator, pattern and scheduling parameters.

This is the SINGLE SOURCE OF TRUTH for all analysis defaults.
All modules should import from here to ensure consistency.

Scheduling defaults are tuned for public quote endpoints that start
throttling above a handful of requests per second:
- 3 concurrent requests per wave, 1.2s between waves
- Quote endpoints accept at most 100 codes per request
"""

# Moving averages
MA_PERIODS = (5, 10, 20, 30, 60, 120, 240, 360)  # Periods reported per symbol

# MACD (Moving Average Convergence Divergence) defaults
MACD_FAST = 12  # Standard default
MACD_SLOW = 26  # Standard default
MACD_SIGNAL = 9  # Standard default

# KDJ (stochastic) defaults
KDJ_N = 9  # RSV lookback
KDJ_SEED = 50.0  # K/D value before the first RSV

# RSI (Relative Strength Index) defaults
RSI_PERIODS = (6, 12, 24)
RSI_ZERO_LOSS_RATIO = 100.0  # Gain/loss ratio used when there were no losses

# Recent performance windows (in daily bars)
RECENT_WINDOWS = {
    "change_1w": 5,
    "change_1m": 20,
    "change_1q": 60,
    "change_6m": 120,
    "change_1y": 250,
}
MIN_DAILY_BARS = 260  # Daily history fetched when the analysis period is not "day"

# Scheduler defaults
MAX_CONCURRENCY = 3  # Tasks started together in one wave
BATCH_DELAY = 1.2  # Seconds between waves
CHUNK_SIZE = 100  # Upstream quote API limit (codes per request)
SERIES_COUNT = 300  # Bars requested per symbol

# Consolidation (range compression) defaults
CONSOLIDATION_PERIOD = 10
PRICE_VOLATILITY_THRESHOLD = 5.0  # Percent: (high - low) / avg close
MA_SPREAD_THRESHOLD = 3.0  # Percent: max |MA - avg(MA)| / avg(MA)
VOLUME_SHRINKING_THRESHOLD = 80.0  # Percent: recent avg volume / previous avg volume
TREND_PERIOD = 30  # Bars examined before the consolidation window

# Trend-before classification
TREND_VOLATILE_RANGE = 15.0  # Range percent above which direction is "volatile"
TREND_VOLATILE_FLAG_RANGE = 12.0  # Range percent above which volatility sub-type is reported
TREND_SIDEWAYS_CHANGE = 3.0  # |change| percent below which direction is "sideways"
DEEP_DROP_PERCENT = 8.0
REBOUND_PERCENT = 5.0
SEGMENT_TREND_CHANGE = 2.0  # Sub-segment |change| below which it counts as sideways
UP_THEN_DOWN_CHANGE = 3.0

# Volume surge defaults
SURGE_PERIOD = 10
SURGE_VOLUME_RATIO_RANGE = (1.5, 2.0)  # Window avg volume / long-term avg volume
SURGE_CHANGE_PERCENT_RANGE = (5.0, 10.0)  # |close change| percent over the window
SURGE_HEAVY = (2.0, 10.0)  # (volume ratio, change percent) for "heavy"
SURGE_MEDIUM = (1.5, 5.0)  # (volume ratio, change percent) for "medium"

# After-surge follow-through
AFTER_SURGE_GAP = 2  # Bars after the surge's last bar where the check starts
AFTER_SURGE_LEAD_IN = 20  # Extra history so MAs are populated
FOLLOW_THROUGH_PERCENT = 3.0
FOLLOW_THROUGH_VOLUME_RATIO = 1.5

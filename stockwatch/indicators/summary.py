"""
Latest-value summaries over indicator series.

Helpers that reduce a full series to the handful of numbers reported per
symbol: last finite values, window high/low/average, drawdown from the
window high, MA deviations and recent change percentages. Invalid or
missing inputs yield None rather than raising.
"""
import math
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from ..shared.defaults import MA_PERIODS, KDJ_N, RECENT_WINDOWS
from ..shared.types import as_frame, finite_or_none
from .technical import BarsLike, calculate_kdj, calculate_ma


def _is_finite_positive(value) -> bool:
    return value is not None and isinstance(value, (int, float, np.floating)) and math.isfinite(value) and value > 0


def last_finite(values: Iterable[float]) -> Optional[float]:
    """Last finite value of a series, or None if there is none."""
    if isinstance(values, pd.Series):
        arr = values.to_numpy(dtype=float)
    else:
        arr = np.asarray(list(values), dtype=float)
    finite = np.flatnonzero(np.isfinite(arr))
    if len(finite) == 0:
        return None
    return float(arr[finite[-1]])


def window_stats(
    bars: BarsLike,
    price: Optional[float] = None,
    quote_high: Optional[float] = None,
    quote_low: Optional[float] = None,
) -> Tuple[Optional[float], Optional[float], Optional[float]]:
    """
    Average close, high and low over the whole window.

    Each bar contributes max(high, close) and min(low, close), so bars that
    violate high >= close or low <= close still count. The quote's high, low
    and price join the candidates when they are finite and positive.

    Returns:
        (avg_price, high_price, low_price); all None for an empty window
    """
    frame = as_frame(bars)
    if frame.empty:
        return None, None, None

    close = frame["Close"].astype(float)
    finite_close = close[np.isfinite(close)]
    avg_price = float(finite_close.mean()) if len(finite_close) else None

    bar_high = np.fmax(frame["High"].astype(float), close)
    bar_low = np.fmin(frame["Low"].astype(float), close)
    high_in_window = bar_high[np.isfinite(bar_high)].max() if np.isfinite(bar_high).any() else None
    low_in_window = bar_low[np.isfinite(bar_low)].min() if np.isfinite(bar_low).any() else None

    high_candidates = [v for v in (high_in_window, quote_high, price) if _is_finite_positive(v)]
    low_candidates = [v for v in (low_in_window, quote_low, price) if _is_finite_positive(v)]

    high_price = float(max(high_candidates)) if high_candidates else None
    low_price = float(min(low_candidates)) if low_candidates else None
    return avg_price, high_price, low_price


def drawdown_from_high(price: Optional[float], high: Optional[float]) -> Optional[float]:
    """(price - high) / high * 100 rounded to 2 decimals; None on non-positive inputs."""
    if not _is_finite_positive(price) or not _is_finite_positive(high):
        return None
    return round((price - high) / high * 100, 2)


def latest_kdj(bars: BarsLike, n: int = KDJ_N) -> Tuple[Optional[float], Optional[float], Optional[float]]:
    """Last finite K, D, J rounded to 2 decimals."""
    k, d, j = calculate_kdj(bars, n)
    return (
        finite_or_none(last_finite(k), 2),
        finite_or_none(last_finite(d), 2),
        finite_or_none(last_finite(j), 2),
    )


def latest_mas(bars: BarsLike, periods: Sequence[int] = MA_PERIODS) -> Dict[int, Optional[float]]:
    """Last finite MA value for each period (None when the window never fills)."""
    frame = as_frame(bars)
    return {p: last_finite(calculate_ma(frame, p)) for p in periods}


def ma_deviation_percents(
    price: Optional[float], mas: Mapping[int, Optional[float]]
) -> Dict[int, Optional[float]]:
    """Percent distance of price above (+) or below (-) each MA, 2 decimals."""
    result: Dict[int, Optional[float]] = {}
    for period, ma in mas.items():
        if _is_finite_positive(price) and _is_finite_positive(ma):
            result[period] = round((price / ma - 1) * 100, 2)
        else:
            result[period] = None
    return result


def close_n_bars_ago(bars: BarsLike, n: int) -> Optional[float]:
    frame = as_frame(bars)
    idx = len(frame) - 1 - n
    if idx < 0:
        return None
    close = float(frame["Close"].iloc[idx])
    return close if _is_finite_positive(close) else None


def recent_change_percents(
    price: Optional[float],
    daily_bars: BarsLike,
    windows: Mapping[str, int] = RECENT_WINDOWS,
) -> Dict[str, Optional[float]]:
    """
    Change of the current price against the close N daily bars ago.

    Windows default to 1w/1m/1q/6m/1y = 5/20/60/120/250 bars. A window longer
    than the available history reports None.
    """
    frame = as_frame(daily_bars)
    result: Dict[str, Optional[float]] = {}
    for name, n in windows.items():
        base = close_n_bars_ago(frame, n)
        if _is_finite_positive(price) and base is not None:
            result[name] = round((price - base) / base * 100, 2)
        else:
            result[name] = None
    return result

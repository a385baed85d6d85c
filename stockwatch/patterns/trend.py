"""
Trend-before classification.

Looks at the `trend_period` bars immediately preceding the consolidation
window and labels the path that led into it: overall direction, whether a
deep drop (and a rebound from it) occurred, whether it rose then fell, and
for wide ranges which of the volatile shapes it followed.
"""
from typing import List

import numpy as np

from ..indicators.technical import BarsLike
from ..shared.defaults import (
    TREND_PERIOD, TREND_VOLATILE_RANGE, TREND_VOLATILE_FLAG_RANGE,
    TREND_SIDEWAYS_CHANGE, DEEP_DROP_PERCENT, REBOUND_PERCENT,
    SEGMENT_TREND_CHANGE, UP_THEN_DOWN_CHANGE,
)
from ..shared.types import as_frame
from .pattern_types import TrendBefore


def _segments(close: np.ndarray) -> List[np.ndarray]:
    size = len(close) // 3
    return [close[:size], close[size:2 * size], close[2 * size:]]


def _segment_change(segment: np.ndarray) -> float:
    if len(segment) < 2:
        return 0.0
    return (segment[-1] - segment[0]) / segment[0] * 100


def _segment_trend(segment: np.ndarray) -> str:
    if len(segment) < 2:
        return "sideways"
    change = _segment_change(segment)
    if abs(change) < SEGMENT_TREND_CHANGE:
        return "sideways"
    return "up" if change > 0 else "down"


def _volatile_type(close: np.ndarray) -> str:
    first, second, third = (_segment_trend(s) for s in _segments(close))
    if (first, second, third) == ("up", "down", "up"):
        return "up_down"
    if (first, second, third) == ("down", "up", "down"):
        return "down_up"
    if first == "sideways" and "up" in (second, third):
        return "sideways_up"
    if first == "sideways" and "down" in (second, third):
        return "sideways_down"
    return "multiple"


def _deep_drop(high: np.ndarray, low: np.ndarray):
    """Largest drop (percent) from the running prior high to a later low, and its index."""
    max_drop = 0.0
    drop_index = -1
    for i in range(1, len(high)):
        prev_high = high[:i].max()
        if prev_high > 0 and low[i] < prev_high:
            drop = (prev_high - low[i]) / prev_high * 100
            if drop > max_drop:
                max_drop = drop
                drop_index = i
    return max_drop, drop_index


def trend_before(bars: BarsLike, period: int, trend_period: int = TREND_PERIOD) -> TrendBefore:
    """
    Classify the trend of the `trend_period` bars before the last `period` bars.

    Direction is "volatile" when the range exceeds 15% of the starting close,
    "sideways" when the net change is under 3%, else "up" or "down".

    Returns:
        TrendBefore; the sideways default when fewer than
        period + trend_period bars exist
    """
    frame = as_frame(bars)
    if period < 1 or trend_period < 1 or len(frame) < period + trend_period:
        return TrendBefore()

    window = frame.iloc[-period - trend_period:-period]
    close = window["Close"].to_numpy(dtype=float)
    high = window["High"].to_numpy(dtype=float)
    low = window["Low"].to_numpy(dtype=float)

    start_close = close[0]
    if not start_close > 0:
        return TrendBefore(days_before=len(window))

    change_percent = (close[-1] - start_close) / start_close * 100
    range_size = (high.max() - low.min()) / start_close * 100

    if range_size > TREND_VOLATILE_RANGE:
        direction = "volatile"
    elif abs(change_percent) < TREND_SIDEWAYS_CHANGE:
        direction = "sideways"
    elif change_percent > 0:
        direction = "up"
    else:
        direction = "down"

    max_drop, drop_index = _deep_drop(high, low)
    has_deep_drop = max_drop > DEEP_DROP_PERCENT

    has_rebound = False
    if has_deep_drop and drop_index >= 0:
        after_high = high[drop_index:]
        after_low = low[drop_index:]
        if len(after_high) > 1:
            drop_low = after_low.min()
            rebound_high = after_high.max()
            if rebound_high > drop_low > 0:
                has_rebound = (rebound_high - drop_low) / drop_low * 100 > REBOUND_PERCENT

    has_up_then_down = False
    if len(close) >= 6:
        first, second, third = (_segment_change(s) for s in _segments(close))
        has_up_then_down = (
            (first > UP_THEN_DOWN_CHANGE or second > UP_THEN_DOWN_CHANGE)
            and third < -UP_THEN_DOWN_CHANGE
        )

    is_volatile = direction == "volatile" or range_size > TREND_VOLATILE_FLAG_RANGE

    return TrendBefore(
        direction=direction,
        change_percent=round(float(change_percent), 2),
        days_before=len(window),
        has_deep_drop=bool(has_deep_drop),
        has_rebound=bool(has_rebound),
        has_up_then_down=bool(has_up_then_down),
        is_volatile=bool(is_volatile),
        volatile_type=_volatile_type(close) if is_volatile else None,
    )

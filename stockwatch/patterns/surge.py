"""
Volume surge detection and after-surge follow-through.

A surge is a window of `period` bars whose close-to-close move falls inside
a percent band while its average volume, relative to the long-term average,
falls inside a ratio band. After each surge the bars that follow are checked
for a consolidation and, after that, a volume-confirmed reversal.
"""
import logging
from typing import List, Optional, Tuple

from ..indicators.technical import BarsLike
from ..shared.config import ConsolidationParams, SurgeParams
from ..shared.defaults import (
    SURGE_PERIOD, SURGE_VOLUME_RATIO_RANGE, SURGE_CHANGE_PERCENT_RANGE,
    SURGE_HEAVY, SURGE_MEDIUM,
    AFTER_SURGE_GAP, AFTER_SURGE_LEAD_IN,
    FOLLOW_THROUGH_PERCENT, FOLLOW_THROUGH_VOLUME_RATIO,
)
from ..shared.types import as_frame
from .consolidation import calculate_consolidation
from .pattern_types import (
    SurgePeriod, AfterSurge, ConsolidationSpan, FollowThrough, SurgePatternAnalysis,
)

logger = logging.getLogger(__name__)

DIRECTIONS = ("drop", "rise")


def _in_band(value: float, band: Tuple[float, Optional[float]]) -> bool:
    low, high = band
    return value >= low and (high is None or value <= high)


def _intensity(volume_ratio: float, abs_change: float) -> str:
    if volume_ratio >= SURGE_HEAVY[0] and abs_change >= SURGE_HEAVY[1]:
        return "heavy"
    if volume_ratio >= SURGE_MEDIUM[0] and abs_change >= SURGE_MEDIUM[1]:
        return "medium"
    return "light"


def detect_volume_surges(
    bars: BarsLike,
    direction: str,
    period: int = SURGE_PERIOD,
    volume_ratio_range: Tuple[float, Optional[float]] = SURGE_VOLUME_RATIO_RANGE,
    change_percent_range: Tuple[float, Optional[float]] = SURGE_CHANGE_PERCENT_RANGE,
) -> List[SurgePeriod]:
    """
    Slide a `period`-bar window over the series and collect surges.

    The baseline is the average volume of bars [-2*period, -period). A window
    qualifies when its close change has the requested sign with magnitude in
    `change_percent_range` and its volume ratio is in `volume_ratio_range`
    (both inclusive; an upper bound of None means unbounded).

    Args:
        bars: OHLCV frame or Bars
        direction: "drop" or "rise"
        period: Window length in bars

    Returns:
        SurgePeriods in window order; empty when fewer than 2 * period bars

    Raises:
        ValueError: On an unknown direction
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")

    frame = as_frame(bars)
    n = len(frame)
    if period < 1 or n < period * 2:
        return []

    close = frame["Close"].to_numpy(dtype=float)
    volume = frame["Volume"].to_numpy(dtype=float)

    long_term_avg = volume[-2 * period:-period].mean()
    if not long_term_avg > 0:
        return []

    surges = []
    for i in range(period, n + 1):
        start_price = close[i - period]
        end_price = close[i - 1]
        if not start_price > 0:
            continue
        change = (end_price - start_price) / start_price * 100

        if direction == "drop":
            if not (change < 0 and _in_band(abs(change), change_percent_range)):
                continue
        elif not (change > 0 and _in_band(change, change_percent_range)):
            continue

        ratio = volume[i - period:i].mean() / long_term_avg
        if not _in_band(ratio, volume_ratio_range):
            continue

        surges.append(SurgePeriod(
            start_index=i - period,
            end_index=i - 1,
            start_price=float(start_price),
            end_price=float(end_price),
            change_percent=round(float(change), 2),
            avg_volume_ratio=round(float(ratio), 2),
            intensity=_intensity(ratio, abs(change)),
            days=period,
        ))

    return surges


def analyze_after_surge(
    bars: BarsLike,
    surge: SurgePeriod,
    params: Optional[ConsolidationParams] = None,
) -> AfterSurge:
    """
    Check for a consolidation after a surge, then a reversal out of it.

    The consolidation window starts two bars after the surge's last bar and
    spans `params.period` bars, evaluated with 20 bars of lead-in history so
    the MAs are populated. The follow-through window is the next bars (up to
    `params.period`, at least 2). A drop surge followed by > 3% rise on
    >= 1.5x the consolidation volume is "consolidation_with_rebound"; a rise
    surge followed by a > 3% fall likewise is "consolidation_with_drop".
    """
    params = params or ConsolidationParams()
    frame = as_frame(bars)
    n = len(frame)
    period = params.period

    start = surge.end_index + AFTER_SURGE_GAP
    if start >= n or n - start < period:
        return AfterSurge()

    check_end = start + period
    check = frame.iloc[max(0, start - AFTER_SURGE_LEAD_IN):check_end]
    if len(check) < period + AFTER_SURGE_LEAD_IN:
        return AfterSurge()

    close = frame["Close"].to_numpy(dtype=float)
    volume = frame["Volume"].to_numpy(dtype=float)

    consolidation = calculate_consolidation(check, params, current_price=float(close[check_end - 1]))
    if not consolidation.combined.is_consolidation:
        return AfterSurge()

    span = ConsolidationSpan(
        start_index=start,
        end_index=check_end - 1,
        strength=consolidation.combined.strength,
        days=period,
    )

    follow_len = min(period, n - check_end)
    if follow_len < 2:
        return AfterSurge(type="consolidation", consolidation=span)

    base_price = close[check_end - 1]
    end_price = close[check_end + follow_len - 1]
    change = (end_price - base_price) / base_price * 100 if base_price > 0 else 0.0

    base_volume = volume[start:check_end].mean()
    follow_volume = volume[check_end:check_end + follow_len].mean()
    ratio = follow_volume / base_volume if base_volume > 0 else 1.0

    follow = FollowThrough(
        start_index=check_end,
        end_index=check_end + follow_len - 1,
        change_percent=round(float(change), 2),
        avg_volume_ratio=round(float(ratio), 2),
    )

    if ratio >= FOLLOW_THROUGH_VOLUME_RATIO:
        if surge.change_percent < 0 and change > FOLLOW_THROUGH_PERCENT:
            return AfterSurge(type="consolidation_with_rebound", consolidation=span, follow_through=follow)
        if surge.change_percent > 0 and change < -FOLLOW_THROUGH_PERCENT:
            return AfterSurge(type="consolidation_with_drop", consolidation=span, follow_through=follow)

    return AfterSurge(type="consolidation", consolidation=span)


def analyze_volume_surge_patterns(
    bars: BarsLike,
    params: Optional[SurgeParams] = None,
) -> SurgePatternAnalysis:
    """Detect drop and rise surges and analyze what followed each one."""
    params = params or SurgeParams()
    frame = as_frame(bars)

    drops = detect_volume_surges(
        frame, "drop", params.period, params.volume_ratio_range, params.change_percent_range
    )
    rises = detect_volume_surges(
        frame, "rise", params.period, params.volume_ratio_range, params.change_percent_range
    )
    logger.debug(f"Surge scan over {len(frame)} bars: {len(drops)} drops, {len(rises)} rises")

    return SurgePatternAnalysis(
        drop_periods=drops,
        rise_periods=rises,
        after_drop=[(s, analyze_after_surge(frame, s, params.consolidation)) for s in drops],
        after_rise=[(s, analyze_after_surge(frame, s, params.consolidation)) for s in rises],
    )

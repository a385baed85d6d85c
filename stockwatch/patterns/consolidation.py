"""
Consolidation (range compression) detection.

Two independent measures over the trailing `period` bars:
- Price volatility: (high - low) / average close, in percent
- MA convergence: spread of three moving averages around their mean

A window is a combined consolidation only when both measures are strictly
below their thresholds. Strength scales linearly from 100 (no movement) to
0 (at or beyond the threshold). Volume shrinkage, price position and the
trend leading into the window are reported alongside.
"""
import math
from typing import Optional, Tuple

import numpy as np

from ..indicators.technical import BarsLike, calculate_ma
from ..shared.config import ConsolidationParams
from ..shared.types import as_frame
from .pattern_types import (
    PriceVolatility, MAConvergence, CombinedConsolidation,
    VolumeAnalysis, PricePosition, ConsolidationResult,
)
from .trend import trend_before


def _strength(value: float, threshold: float) -> float:
    return max(0.0, min(100.0, 100 - value / threshold * 100))


def ma_periods_for(period: int) -> Tuple[int, int, int]:
    """MA triple used for convergence: short windows for short consolidations."""
    if period <= 10:
        return (5, 10, 20)
    if period <= 20:
        return (10, 20, 30)
    return (20, 30, 60)


def price_volatility(bars: BarsLike, period: int, threshold: float) -> PriceVolatility:
    """
    Price range of the trailing window relative to its average close.

    Args:
        bars: OHLCV frame or Bars
        period: Window length
        threshold: Percent below which the window counts as consolidating

    Returns:
        PriceVolatility; the zero result when fewer than `period` bars exist
        or the average close is not positive
    """
    frame = as_frame(bars)
    if len(frame) < period:
        return PriceVolatility()

    recent = frame.iloc[-period:]
    high = float(recent["High"].max())
    low = float(recent["Low"].min())
    avg = float(recent["Close"].mean())
    if not avg > 0:
        return PriceVolatility()

    volatility = (high - low) / avg * 100
    return PriceVolatility(
        is_consolidation=volatility < threshold,
        volatility=round(volatility, 2),
        strength=round(_strength(volatility, threshold), 2),
    )


def _last_positive(series) -> Optional[float]:
    values = series.to_numpy(dtype=float)
    for v in values[::-1]:
        if math.isfinite(v) and v > 0:
            return float(v)
    return None


def ma_convergence(bars: BarsLike, period: int, threshold: float) -> MAConvergence:
    """
    Spread of the latest three MAs around their mean.

    MA5/10/20 for period <= 10, MA10/20/30 for period <= 20, MA20/30/60
    otherwise. Needs enough bars for the longest MA.
    """
    frame = as_frame(bars)
    periods = ma_periods_for(period)
    if len(frame) < period or len(frame) < max(periods):
        return MAConvergence(ma_periods=periods)

    latest = [_last_positive(calculate_ma(frame, p)) for p in periods]
    if any(v is None for v in latest):
        return MAConvergence(ma_periods=periods)

    avg_ma = sum(latest) / 3
    if avg_ma <= 0:
        return MAConvergence(ma_periods=periods)

    spread = max(abs(v - avg_ma) for v in latest) / avg_ma * 100
    return MAConvergence(
        is_consolidation=spread < threshold,
        ma_spread=round(spread, 2),
        strength=round(_strength(spread, threshold), 2),
        ma_periods=periods,
    )


def volume_analysis(bars: BarsLike, period: int, shrinking_threshold: float) -> VolumeAnalysis:
    """
    Ratio (percent) of the trailing period's average volume to the period before.

    Needs 2 * period bars; otherwise (or with no preceding volume) the ratio
    reads 100 and volume is not shrinking.
    """
    frame = as_frame(bars)
    if len(frame) < period * 2:
        return VolumeAnalysis()

    volume = frame["Volume"].astype(float)
    recent_avg = float(volume.iloc[-period:].mean())
    previous_avg = float(volume.iloc[-2 * period:-period].mean())
    if not previous_avg > 0:
        return VolumeAnalysis()

    ratio = recent_avg / previous_avg * 100
    return VolumeAnalysis(
        avg_volume_ratio=round(ratio, 2),
        is_volume_shrinking=ratio < shrinking_threshold,
    )


def price_position(bars: BarsLike, period: int, current_price: float) -> PricePosition:
    """Where the current price sits inside the trailing window's high/low range."""
    frame = as_frame(bars)
    fallback = PricePosition(recent_high=current_price, recent_low=current_price)
    if len(frame) < period or not current_price > 0:
        return fallback

    recent = frame.iloc[-period:]
    recent_high = float(recent["High"].max())
    recent_low = float(recent["Low"].min())
    if recent_high <= 0 or recent_low <= 0 or recent_high < recent_low:
        return fallback

    price_range = recent_high - recent_low
    position = (current_price - recent_low) / price_range * 100 if price_range > 0 else 50.0
    return PricePosition(
        relative_to_high=round((recent_high - current_price) / recent_high * 100, 2),
        relative_to_low=round((current_price - recent_low) / recent_low * 100, 2),
        position_in_range=round(position, 2),
        recent_high=round(recent_high, 2),
        recent_low=round(recent_low, 2),
    )


def calculate_consolidation(
    bars: BarsLike,
    params: Optional[ConsolidationParams] = None,
    current_price: Optional[float] = None,
) -> ConsolidationResult:
    """
    Full consolidation analysis of the trailing window.

    Args:
        bars: OHLCV frame or Bars
        params: Thresholds (defaults from shared.defaults)
        current_price: When positive, price position is included

    Returns:
        ConsolidationResult; combined strength is the mean of both strengths
    """
    params = params or ConsolidationParams()
    frame = as_frame(bars)

    volatility = price_volatility(frame, params.period, params.price_volatility_threshold)
    convergence = ma_convergence(frame, params.period, params.ma_spread_threshold)
    volume = volume_analysis(frame, params.period, params.volume_shrinking_threshold)

    position = None
    if current_price is not None and np.isfinite(current_price) and current_price > 0:
        position = price_position(frame, params.period, current_price)

    combined = CombinedConsolidation(
        is_consolidation=volatility.is_consolidation and convergence.is_consolidation,
        strength=round((volatility.strength + convergence.strength) / 2, 2),
    )

    return ConsolidationResult(
        price_volatility=volatility,
        ma_convergence=convergence,
        combined=combined,
        volume_analysis=volume,
        price_position=position,
        trend_before=trend_before(frame, params.period, params.trend_period),
    )

"""
Per-symbol analysis task.

One task fetches fundamentals and bars for a quoted symbol, computes the
indicator summaries and pattern classifications and builds the symbol's
AnalysisRecord. Collaborator failures are either tolerated (detail, daily
history) or raised as the matching AnalysisError subclass; the scheduler
turns raised errors into per-symbol failures.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional

import pandas as pd

from ..data.sources import DataSource
from ..indicators.summary import (
    last_finite, window_stats, drawdown_from_high,
    latest_kdj, latest_mas, ma_deviation_percents, recent_change_percents,
)
from ..indicators.technical import calculate_all_rsi, calculate_macd
from ..patterns.consolidation import calculate_consolidation
from ..patterns.surge import analyze_volume_surge_patterns
from ..shared.config import AnalysisConfig
from ..shared.defaults import MIN_DAILY_BARS
from ..shared.errors import (
    AnalysisError, Cancelled, ComputeError, InsufficientSeries, SeriesFetchFailed,
)
from ..shared.types import AnalysisRecord, Detail, KLinePeriod, Quote, as_frame, finite_or_none

logger = logging.getLogger(__name__)


def _check_cancel(cancel_event: Optional[threading.Event], code: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise Cancelled(code=code)


def _fetch_detail(source: DataSource, code: str) -> Optional[Detail]:
    try:
        return source.fetch_detail(code)
    except Exception as e:
        logger.warning(f"{code}: detail fetch failed, continuing without fundamentals: {e}")
        return None


def _fetch_series(source: DataSource, code: str, period: KLinePeriod, count: int) -> pd.DataFrame:
    try:
        series = source.fetch_series(code, period, count)
    except AnalysisError:
        raise
    except Exception as e:
        raise SeriesFetchFailed(f"series fetch failed: {e}", code) from e
    frame = as_frame(series)
    if frame.empty:
        raise InsufficientSeries("no bars returned", code)
    return frame


def _fetch_daily(source: DataSource, code: str, count: int) -> pd.DataFrame:
    try:
        return as_frame(source.fetch_series(code, KLinePeriod.DAY, max(MIN_DAILY_BARS, count)))
    except Exception as e:
        logger.warning(f"{code}: daily history fetch failed, recent changes unavailable: {e}")
        return as_frame(None)


def build_record(
    quote: Quote,
    bars: pd.DataFrame,
    daily_bars: pd.DataFrame,
    detail: Optional[Detail],
    config: AnalysisConfig,
    name: Optional[str] = None,
) -> AnalysisRecord:
    """Compute every summary and pattern for one symbol from already-fetched data."""
    price = quote.price
    avg_price, high_price, low_price = window_stats(bars, price, quote.high, quote.low)
    kdj_k, kdj_d, kdj_j = latest_kdj(bars)
    mas = latest_mas(bars)
    dif, dea, macd = calculate_macd(bars)
    rsi = {p: finite_or_none(last_finite(s), 2) for p, s in calculate_all_rsi(bars).items()}

    return AnalysisRecord(
        code=quote.code,
        name=quote.name or name or quote.code,
        price=price,
        change=quote.change,
        change_percent=quote.change_percent,
        volume=quote.volume,
        amount=quote.amount,
        market_cap=detail.market_cap if detail else None,
        circulating_market_cap=detail.circulating_market_cap if detail else None,
        pe_ratio=detail.pe_ratio if detail else None,
        turnover_rate=detail.turnover_rate if detail else None,
        avg_price=finite_or_none(avg_price),
        high_price=finite_or_none(high_price),
        low_price=finite_or_none(low_price),
        drawdown_percent=drawdown_from_high(price, high_price),
        kdj_k=kdj_k,
        kdj_d=kdj_d,
        kdj_j=kdj_j,
        macd_dif=finite_or_none(last_finite(dif), 4),
        macd_dea=finite_or_none(last_finite(dea), 4),
        macd=finite_or_none(last_finite(macd), 4),
        rsi=rsi,
        ma_values={p: finite_or_none(v, 4) for p, v in mas.items()},
        ma_deviation=ma_deviation_percents(price, mas),
        recent_changes=recent_change_percents(price, daily_bars),
        consolidation=calculate_consolidation(bars, config.consolidation, current_price=price),
        surge_patterns=analyze_volume_surge_patterns(bars, config.surge),
        bar_count=len(bars),
        analyzed_at=datetime.now(),
    )


def analyze_symbol(
    source: DataSource,
    quote: Quote,
    period: KLinePeriod,
    count: int,
    config: Optional[AnalysisConfig] = None,
    cancel_event: Optional[threading.Event] = None,
    name: Optional[str] = None,
) -> AnalysisRecord:
    """
    Analyze one quoted symbol.

    Args:
        source: Data source for detail and series fetches
        quote: The symbol's quote from the chunk's batch fetch
        period: Bar period for the analysis series
        count: Bars to request
        config: Pattern parameters (defaults if omitted)
        cancel_event: Shared cancellation token checked before each fetch
        name: Fallback display name when the quote has none

    Returns:
        AnalysisRecord

    Raises:
        Cancelled: If cancellation was observed before or after a fetch
        SeriesFetchFailed: If the series fetch raised
        InsufficientSeries: If the series came back empty
        ComputeError: If an indicator or pattern computation raised
    """
    config = config or AnalysisConfig()
    code = quote.code

    _check_cancel(cancel_event, code)
    detail = _fetch_detail(source, code)

    _check_cancel(cancel_event, code)
    bars = _fetch_series(source, code, period, count)
    _check_cancel(cancel_event, code)

    # Recent changes are always measured on daily bars
    if period == KLinePeriod.DAY:
        daily_bars = bars
    else:
        daily_bars = _fetch_daily(source, code, count)
        _check_cancel(cancel_event, code)

    try:
        record = build_record(quote, bars, daily_bars, detail, config, name=name)
    except Exception as e:
        raise ComputeError(f"analysis failed: {type(e).__name__}: {e}", code) from e

    logger.debug(f"{code}: analyzed {len(bars)} {period.value} bars")
    return record

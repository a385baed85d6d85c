"""
Yahoo Finance data source (via yfinance).

Quotes come from one batched yf.download of the last few daily bars per
chunk, fundamentals from Ticker.info and series from Ticker.history.
Yahoo has no yearly interval, so yearly bars are aggregated from monthly
ones.
"""
import logging
import warnings
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
import yfinance as yf

from ..shared.errors import DetailFetchFailed, QuoteFetchFailed, SeriesFetchFailed
from ..shared.types import OHLCV_COLUMNS, Detail, KLinePeriod, Quote
from .sources import DataSource

# Suppress yfinance's pandas deprecation warnings (will be fixed in future yfinance version)
warnings.filterwarnings('ignore', message='.*Timestamp.utcnow.*')

logger = logging.getLogger(__name__)

# KLinePeriod -> (yfinance interval, history lookback)
# Intraday lookbacks are Yahoo's maximum for each interval.
INTERVALS: Dict[KLinePeriod, tuple] = {
    KLinePeriod.MIN_1: ("1m", "7d"),
    KLinePeriod.MIN_5: ("5m", "60d"),
    KLinePeriod.MIN_15: ("15m", "60d"),
    KLinePeriod.MIN_30: ("30m", "60d"),
    KLinePeriod.MIN_60: ("60m", "730d"),
    KLinePeriod.DAY: ("1d", "max"),
    KLinePeriod.WEEK: ("1wk", "max"),
    KLinePeriod.MONTH: ("1mo", "max"),
    KLinePeriod.YEAR: ("1mo", "max"),  # Aggregated to years below
}

QUOTE_LOOKBACK = "5d"


def _num(value: Any) -> Optional[float]:
    """Finite float or None (yfinance mixes None, NaN and strings in info)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    return v if np.isfinite(v) else None


def normalize_ohlcv(df: Optional[pd.DataFrame]) -> pd.DataFrame:
    """
    Reduce a yfinance frame to OHLCV columns with a clean, increasing index.

    Flattens multi-level columns, drops rows without a close and duplicate
    timestamps.
    """
    if df is None or df.empty:
        return pd.DataFrame(columns=OHLCV_COLUMNS, index=pd.DatetimeIndex([], name="Date"), dtype=float)

    df = df.copy()
    # Flatten multi-level columns if present (yfinance sometimes returns these)
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)

    missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns from Yahoo data: {missing}")

    df = df[OHLCV_COLUMNS].astype(float)
    df = df[df["Close"].notna()]
    df = df[~df.index.duplicated(keep="last")].sort_index()
    df.index.name = "Date"
    return df


def aggregate_yearly(df: pd.DataFrame) -> pd.DataFrame:
    """Aggregate bars to calendar years, stamped with each year's last bar."""
    if df.empty:
        return df
    grouped = df.groupby(df.index.year)
    yearly = pd.DataFrame({
        "Open": grouped["Open"].first(),
        "High": grouped["High"].max(),
        "Low": grouped["Low"].min(),
        "Close": grouped["Close"].last(),
        "Volume": grouped["Volume"].sum(),
    })
    last_stamp = pd.Series(df.index, index=df.index).groupby(df.index.year).last()
    yearly.index = pd.DatetimeIndex(last_stamp.values, name="Date")
    return yearly


def _quote_from_bars(code: str, bars: pd.DataFrame) -> Optional[Quote]:
    bars = normalize_ohlcv(bars)
    if bars.empty:
        return None
    last = bars.iloc[-1]
    price = float(last["Close"])
    prev_close = float(bars["Close"].iloc[-2]) if len(bars) > 1 else float(last["Open"])
    change = price - prev_close
    change_percent = change / prev_close * 100 if prev_close > 0 else 0.0
    volume = float(last["Volume"]) if np.isfinite(last["Volume"]) else 0.0
    return Quote(
        code=code,
        name=code,
        price=price,
        change=round(change, 4),
        change_percent=round(change_percent, 2),
        open=float(last["Open"]),
        prev_close=prev_close,
        high=float(last["High"]),
        low=float(last["Low"]),
        volume=volume,
        amount=price * volume,  # Yahoo has no turnover value; approximated
        timestamp=pd.Timestamp(bars.index[-1]),
    )


class YahooDataSource(DataSource):
    """DataSource backed by Yahoo Finance."""

    def __init__(self, timeout: float = 10.0):
        """
        Args:
            timeout: Seconds for each HTTP request made by yfinance
        """
        self.timeout = timeout

    def fetch_quotes(self, codes: Sequence[str]) -> List[Quote]:
        codes = list(codes)
        if not codes:
            return []
        try:
            df = yf.download(
                codes,
                period=QUOTE_LOOKBACK,
                interval="1d",
                group_by="ticker",
                progress=False,
                threads=False,
                auto_adjust=False,
                timeout=self.timeout,
            )
        except Exception as e:
            raise QuoteFetchFailed(f"quote download failed: {e}") from e
        if df is None or df.empty:
            return []

        quotes = []
        for code in codes:
            if isinstance(df.columns, pd.MultiIndex):
                if code not in df.columns.get_level_values(0):
                    continue
                bars = df[code]
            elif len(codes) == 1:
                bars = df
            else:
                continue
            quote = _quote_from_bars(code, bars)
            if quote is not None:
                quotes.append(quote)

        if len(quotes) < len(codes):
            logger.debug(f"Yahoo returned quotes for {len(quotes)}/{len(codes)} codes")
        return quotes

    def fetch_detail(self, code: str) -> Optional[Detail]:
        try:
            info = yf.Ticker(code).info or {}
        except Exception as e:
            raise DetailFetchFailed(f"detail fetch failed: {e}", code) from e
        if not info:
            return None

        price = _num(info.get("currentPrice")) or _num(info.get("regularMarketPrice"))
        float_shares = _num(info.get("floatShares"))
        volume = _num(info.get("volume")) or _num(info.get("regularMarketVolume"))
        avg_volume = _num(info.get("averageVolume"))

        circulating = price * float_shares if price and float_shares else None
        turnover = volume / float_shares * 100 if volume and float_shares else None
        volume_ratio = volume / avg_volume if volume and avg_volume else None

        return Detail(
            code=code,
            market_cap=_num(info.get("marketCap")),
            circulating_market_cap=circulating,
            pe_ratio=_num(info.get("trailingPE")),
            turnover_rate=round(turnover, 4) if turnover is not None else None,
            volume_ratio=round(volume_ratio, 4) if volume_ratio is not None else None,
            timestamp=pd.Timestamp.now(),
        )

    def fetch_series(self, code: str, period: KLinePeriod, count: int) -> pd.DataFrame:
        interval, lookback = INTERVALS[period]
        try:
            df = yf.Ticker(code).history(
                period=lookback,
                interval=interval,
                auto_adjust=False,
                timeout=self.timeout,
            )
        except Exception as e:
            raise SeriesFetchFailed(f"series fetch failed: {e}", code) from e
        df = normalize_ohlcv(df)
        if period == KLinePeriod.YEAR:
            df = aggregate_yearly(df)
        return df.tail(count)

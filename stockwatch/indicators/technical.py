"""
Technical indicators for batch stock analysis.

Provides MA, EMA, MACD, KDJ and RSI over an OHLCV frame (or a sequence of
Bars). Every function returns series index-aligned to its input; positions
before the lookback window is populated hold NaN, never zero. Short input
never raises: the result is simply all NaN.
"""
from typing import Dict, Iterable, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..shared.defaults import (
    MA_PERIODS, RSI_PERIODS, RSI_ZERO_LOSS_RATIO,
    MACD_FAST, MACD_SLOW, MACD_SIGNAL,
    KDJ_N, KDJ_SEED,
)
from ..shared.types import Bar, as_frame

BarsLike = Union[pd.DataFrame, Sequence[Bar]]


def _close(bars: BarsLike) -> pd.Series:
    frame = as_frame(bars)
    return frame["Close"].astype(float)


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")


def calculate_ma(bars: BarsLike, period: int) -> pd.Series:
    """
    Simple moving average of Close.

    MA[i] = mean(close[i-period+1 .. i]); the first period-1 positions are NaN.
    """
    _check_period(period)
    return _close(bars).rolling(window=period, min_periods=period).mean()


def calculate_ema(series: Union[pd.Series, Iterable[float]], period: int) -> pd.Series:
    """
    Exponential moving average seeded with the first value.

    EMA[0] = x[0]; EMA[i] = (x[i] - EMA[i-1]) * 2/(period+1) + EMA[i-1].
    This is pandas' ewm(span=period, adjust=False).
    """
    _check_period(period)
    if not isinstance(series, pd.Series):
        series = pd.Series(list(series), dtype=float)
    return series.astype(float).ewm(span=period, adjust=False).mean()


def calculate_macd(
    bars: BarsLike,
    fast: int = MACD_FAST,
    slow: int = MACD_SLOW,
    signal: int = MACD_SIGNAL,
) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Calculate MACD (Moving Average Convergence Divergence).

    DIF = EMA(close, fast) - EMA(close, slow), DEA = EMA(DIF, signal),
    MACD = (DIF - DEA) * 2.

    Returns:
        Tuple of (DIF, DEA, MACD histogram)
    """
    close = _close(bars)
    dif = calculate_ema(close, fast) - calculate_ema(close, slow)
    dea = calculate_ema(dif, signal)
    macd = (dif - dea) * 2
    return dif, dea, macd


def calculate_rsv(bars: BarsLike, n: int = KDJ_N) -> pd.Series:
    """Raw stochastic value over the trailing n bars; 0 when the window has no range."""
    _check_period(n)
    frame = as_frame(bars)
    high = frame["High"].astype(float).rolling(window=n, min_periods=n).max()
    low = frame["Low"].astype(float).rolling(window=n, min_periods=n).min()
    close = frame["Close"].astype(float)
    span = high - low
    rsv = (close - low) / span.replace(0, np.nan) * 100
    # Populated windows without range read as 0, unpopulated stay NaN
    return rsv.where(span.isna() | (span != 0), 0.0)


def calculate_kdj(bars: BarsLike, n: int = KDJ_N) -> Tuple[pd.Series, pd.Series, pd.Series]:
    """
    Calculate the KDJ stochastic oscillator.

    K = (2 * K_prev + RSV) / 3, D = (2 * D_prev + K) / 3, J = 3K - 2D.
    K_prev/D_prev default to 50 where the previous value is NaN, so the first
    valid RSV already gets one smoothing step. A series whose very first bar
    has an RSV (n == 1) starts at exactly 50.

    Returns:
        Tuple of (K, D, J)
    """
    rsv = calculate_rsv(bars, n)
    values = rsv.to_numpy(dtype=float)
    k = np.full(len(values), np.nan)
    d = np.full(len(values), np.nan)

    for i, r in enumerate(values):
        if np.isnan(r):
            continue
        if i == 0:
            k[i] = KDJ_SEED
            d[i] = KDJ_SEED
            continue
        prev_k = KDJ_SEED if np.isnan(k[i - 1]) else k[i - 1]
        prev_d = KDJ_SEED if np.isnan(d[i - 1]) else d[i - 1]
        k[i] = (2 * prev_k + r) / 3
        d[i] = (2 * prev_d + k[i]) / 3

    k_series = pd.Series(k, index=rsv.index)
    d_series = pd.Series(d, index=rsv.index)
    j_series = 3 * k_series - 2 * d_series
    return k_series, d_series, j_series


def calculate_rsi(bars: BarsLike, period: int) -> pd.Series:
    """
    Calculate Relative Strength Index with simple averages.

    Averages gains and losses over the trailing `period` close-to-close
    deltas (first `period` positions NaN). With no losses the gain/loss
    ratio is taken as RSI_ZERO_LOSS_RATIO rather than infinity, so a
    strictly rising window reads just below 100.

    RSI = 100 - (100 / (1 + RS))
    """
    _check_period(period)
    close = _close(bars)
    delta = close.diff()
    gain = delta.where(delta > 0, 0.0)
    loss = (-delta).where(delta < 0, 0.0)

    avg_gain = gain.rolling(window=period, min_periods=period).mean()
    avg_loss = loss.rolling(window=period, min_periods=period).mean()

    rs = avg_gain / avg_loss.replace(0, np.nan)
    rs = rs.where(avg_loss != 0, RSI_ZERO_LOSS_RATIO)
    rsi = 100 - (100 / (1 + rs))
    # Position 0 has no delta, so the first full window ends at `period`
    rsi.iloc[:period] = np.nan
    return rsi


def calculate_all_ma(bars: BarsLike, periods: Sequence[int] = MA_PERIODS) -> Dict[int, pd.Series]:
    """MA for every period (default 5/10/20/30/60/120/240/360)."""
    frame = as_frame(bars)
    return {p: calculate_ma(frame, p) for p in periods}


def calculate_all_rsi(bars: BarsLike, periods: Sequence[int] = RSI_PERIODS) -> Dict[int, pd.Series]:
    """RSI for every period (default 6/12/24)."""
    frame = as_frame(bars)
    return {p: calculate_rsi(frame, p) for p in periods}


def calculate_all(
    bars: BarsLike,
    ma_periods: Sequence[int] = MA_PERIODS,
    rsi_periods: Sequence[int] = RSI_PERIODS,
    kdj_n: int = KDJ_N,
    macd_params: Optional[Tuple[int, int, int]] = None,
) -> pd.DataFrame:
    """
    Calculate all indicators and return them as one DataFrame.

    Columns: price, ma<p>..., dif, dea, macd, k, d, j, rsi<p>...

    Args:
        bars: OHLCV frame or sequence of Bars
        ma_periods: MA periods to include
        rsi_periods: RSI periods to include
        kdj_n: KDJ lookback
        macd_params: (fast, slow, signal); defaults from shared.defaults

    Returns:
        DataFrame index-aligned to the input
    """
    frame = as_frame(bars)
    fast, slow, signal = macd_params or (MACD_FAST, MACD_SLOW, MACD_SIGNAL)

    df = pd.DataFrame(index=frame.index)
    df["price"] = frame["Close"].astype(float)
    for p, series in calculate_all_ma(frame, ma_periods).items():
        df[f"ma{p}"] = series
    df["dif"], df["dea"], df["macd"] = calculate_macd(frame, fast, slow, signal)
    df["k"], df["d"], df["j"] = calculate_kdj(frame, kdj_n)
    for p, series in calculate_all_rsi(frame, rsi_periods).items():
        df[f"rsi{p}"] = series
    return df

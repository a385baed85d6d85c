"""
Shared fixtures: synthetic OHLCV frames and an in-memory DataSource.
"""
import threading
from typing import Callable, Dict, List, Optional, Sequence, Set

import numpy as np
import pandas as pd
import pytest

from stockwatch.data.sources import DataSource
from stockwatch.shared.types import Detail, Quote


def build_bars(
    closes: Sequence[float],
    highs: Optional[Sequence[float]] = None,
    lows: Optional[Sequence[float]] = None,
    volumes: Optional[Sequence[float]] = None,
    start: str = '2024-01-01',
) -> pd.DataFrame:
    closes = np.asarray(closes, dtype=float)
    n = len(closes)
    return pd.DataFrame({
        'Open': closes,
        'High': np.asarray(highs, dtype=float) if highs is not None else closes,
        'Low': np.asarray(lows, dtype=float) if lows is not None else closes,
        'Close': closes,
        'Volume': np.asarray(volumes, dtype=float) if volumes is not None else np.full(n, 1000.0),
    }, index=pd.date_range(start, periods=n, freq='D'))


@pytest.fixture
def make_bars():
    """Factory building an OHLCV frame from closes (high/low/volume optional)."""
    return build_bars


@pytest.fixture
def sample_ohlcv():
    """300 bars of a noisy uptrend with a fixed seed."""
    rng = np.random.default_rng(42)
    base = 100 + np.arange(300) * 0.1
    noise = rng.normal(0, 1.0, 300)
    closes = base + noise
    return build_bars(
        closes,
        highs=closes + np.abs(noise) + 0.5,
        lows=closes - np.abs(noise) - 0.5,
        volumes=rng.integers(1_000_000, 5_000_000, 300),
    )


class FakeSource(DataSource):
    """
    In-memory DataSource.

    Every code gets the same series unless overridden; failures are injected
    per code (series/detail) or per chunk (quotes, by any member code).
    """

    def __init__(
        self,
        bars: pd.DataFrame,
        prices: Optional[Dict[str, float]] = None,
        fail_quotes_for: Optional[Set[str]] = None,
        missing_quotes: Optional[Set[str]] = None,
        fail_series: Optional[Set[str]] = None,
        empty_series: Optional[Set[str]] = None,
        fail_detail: Optional[Set[str]] = None,
        on_detail: Optional[Callable[[str], None]] = None,
    ):
        self.bars = bars
        self.prices = prices or {}
        self.fail_quotes_for = fail_quotes_for or set()
        self.missing_quotes = missing_quotes or set()
        self.fail_series = fail_series or set()
        self.empty_series = empty_series or set()
        self.fail_detail = fail_detail or set()
        self.on_detail = on_detail

        self._lock = threading.Lock()
        self.quote_calls: List[List[str]] = []
        self.series_calls: List[tuple] = []
        self.detail_calls: List[str] = []

    def fetch_quotes(self, codes):
        codes = list(codes)
        with self._lock:
            self.quote_calls.append(codes)
        if self.fail_quotes_for & set(codes):
            raise ConnectionError("quote endpoint unavailable")
        last = float(self.bars['Close'].iloc[-1])
        return [
            Quote(
                code=c,
                name=f"{c} Corp",
                price=self.prices.get(c, last),
                high=self.prices.get(c, last),
                low=self.prices.get(c, last),
                volume=1_000_000.0,
                amount=5_000_000.0,
            )
            for c in codes if c not in self.missing_quotes
        ]

    def fetch_detail(self, code):
        with self._lock:
            self.detail_calls.append(code)
        if self.on_detail is not None:
            self.on_detail(code)
        if code in self.fail_detail:
            raise ConnectionError("detail endpoint unavailable")
        return Detail(code=code, market_cap=1e9, pe_ratio=15.0)

    def fetch_series(self, code, period, count):
        with self._lock:
            self.series_calls.append((code, period, count))
        if code in self.fail_series:
            raise ConnectionError("series endpoint unavailable")
        if code in self.empty_series:
            return self.bars.iloc[0:0]
        return self.bars.tail(count)


@pytest.fixture
def fake_source(sample_ohlcv):
    """Factory for FakeSource instances over sample_ohlcv."""
    def _make(**kwargs):
        bars = kwargs.pop('bars', sample_ohlcv)
        return FakeSource(bars, **kwargs)
    return _make

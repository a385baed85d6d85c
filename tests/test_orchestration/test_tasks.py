"""
Tests for the per-symbol analysis task.
"""
import threading
from unittest.mock import patch

import pytest

from stockwatch.orchestration.tasks import analyze_symbol
from stockwatch.shared.defaults import MA_PERIODS, RECENT_WINDOWS, RSI_PERIODS
from stockwatch.shared.errors import (
    Cancelled,
    ComputeError,
    InsufficientSeries,
    SeriesFetchFailed,
)
from stockwatch.shared.types import KLinePeriod, Quote


@pytest.fixture
def quote(sample_ohlcv):
    price = float(sample_ohlcv['Close'].iloc[-1])
    return Quote(code="AAPL", name="Apple", price=price, high=price, low=price, volume=1e6, amount=1e8)


class TestAnalyzeSymbol:
    """Tests for analyze_symbol."""

    def test_record_fields(self, fake_source, quote):
        record = analyze_symbol(fake_source(), quote, KLinePeriod.DAY, 300)

        assert record.code == "AAPL"
        assert record.name == "Apple"
        assert record.bar_count == 300
        assert set(record.rsi) == set(RSI_PERIODS)
        assert set(record.ma_values) == set(MA_PERIODS)
        assert record.ma_values[360] is None
        assert record.ma_values[5] is not None
        assert set(record.recent_changes) == set(RECENT_WINDOWS)
        assert record.kdj_k is not None
        assert record.macd_dif is not None
        assert record.drawdown_percent <= 0
        assert record.high_price >= record.price
        assert record.analyzed_at is not None

    def test_daily_period_reuses_bars(self, fake_source, quote):
        source = fake_source()
        analyze_symbol(source, quote, KLinePeriod.DAY, 300)
        assert source.series_calls == [("AAPL", KLinePeriod.DAY, 300)]

    def test_series_failure(self, fake_source, quote):
        with pytest.raises(SeriesFetchFailed, match="series fetch failed"):
            analyze_symbol(fake_source(fail_series={"AAPL"}), quote, KLinePeriod.DAY, 300)

    def test_empty_series(self, fake_source, quote):
        with pytest.raises(InsufficientSeries):
            analyze_symbol(fake_source(empty_series={"AAPL"}), quote, KLinePeriod.DAY, 300)

    def test_daily_failure_tolerated(self, fake_source, quote):
        """A failing daily fetch leaves recent changes empty but the record intact."""
        source = fake_source()
        original = source.fetch_series

        def fetch(code, period, count):
            if period == KLinePeriod.DAY:
                raise ConnectionError("daily down")
            return original(code, period, count)

        source.fetch_series = fetch
        record = analyze_symbol(source, quote, KLinePeriod.WEEK, 100)

        assert record.bar_count == 100
        assert all(v is None for v in record.recent_changes.values())

    def test_cancelled_before_fetch(self, fake_source, quote):
        source = fake_source()
        event = threading.Event()
        event.set()

        with pytest.raises(Cancelled):
            analyze_symbol(source, quote, KLinePeriod.DAY, 300, cancel_event=event)
        assert source.detail_calls == []

    def test_cancelled_during_series_fetch(self, fake_source, quote):
        """Cancel while the weekly series is in flight: no daily request follows."""
        source = fake_source()
        event = threading.Event()
        original = source.fetch_series

        def fetch(code, period, count):
            bars = original(code, period, count)
            event.set()
            return bars

        source.fetch_series = fetch
        with pytest.raises(Cancelled):
            analyze_symbol(source, quote, KLinePeriod.WEEK, 100, cancel_event=event)

        assert [call[1] for call in source.series_calls] == [KLinePeriod.WEEK]

    def test_compute_error_wrapped(self, fake_source, quote):
        with patch("stockwatch.orchestration.tasks.build_record", side_effect=ZeroDivisionError("bad")):
            with pytest.raises(ComputeError, match="ZeroDivisionError"):
                analyze_symbol(fake_source(), quote, KLinePeriod.DAY, 300)

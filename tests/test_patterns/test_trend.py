"""
Tests for trend-before classification.
"""
import numpy as np

from stockwatch.patterns.trend import trend_before


def _with_range(make_bars, closes):
    closes = np.asarray(closes, dtype=float)
    return make_bars(closes, highs=closes + 0.5, lows=closes - 0.5)


class TestTrendBefore:
    """Tests for trend_before."""

    def test_uptrend(self, make_bars):
        """Steady 10% rise within a narrow range reads as up."""
        closes = list(np.linspace(100, 110, 30)) + [110.0] * 10
        result = trend_before(_with_range(make_bars, closes), period=10, trend_period=30)

        assert result.direction == "up"
        assert result.change_percent == 10.0
        assert result.days_before == 30
        assert not result.has_deep_drop
        assert not result.is_volatile
        assert result.volatile_type is None

    def test_downtrend(self, make_bars):
        closes = list(np.linspace(110, 100, 30)) + [100.0] * 10
        result = trend_before(_with_range(make_bars, closes), period=10, trend_period=30)

        assert result.direction == "down"
        assert result.change_percent < -3

    def test_sideways(self, make_bars):
        closes = [100.0, 101.0] * 15 + [100.0] * 10
        result = trend_before(_with_range(make_bars, closes), period=10, trend_period=30)
        assert result.direction == "sideways"

    def test_volatile_up_down(self, make_bars):
        """Up, down, up across the three thirds with a 16% range."""
        closes = (
            list(np.linspace(100, 115, 10))
            + list(np.linspace(115, 100, 10))
            + list(np.linspace(100, 115, 10))
            + [115.0] * 10
        )
        result = trend_before(_with_range(make_bars, closes), period=10, trend_period=30)

        assert result.direction == "volatile"
        assert result.is_volatile
        assert result.volatile_type == "up_down"
        assert result.has_deep_drop
        assert result.has_rebound
        assert not result.has_up_then_down

    def test_up_then_down(self, make_bars):
        closes = (
            list(np.linspace(100, 105, 10))
            + [105.0] * 10
            + list(np.linspace(105, 100, 10))
            + [100.0] * 10
        )
        result = trend_before(_with_range(make_bars, closes), period=10, trend_period=30)

        assert result.has_up_then_down
        assert result.direction == "sideways"

    def test_ignores_consolidation_window(self, make_bars):
        """Only the bars before the last `period` are examined."""
        closes = [100.0] * 30 + list(np.linspace(100, 200, 10))
        result = trend_before(_with_range(make_bars, closes), period=10, trend_period=30)

        assert result.direction == "sideways"
        assert result.change_percent == 0.0

    def test_insufficient_bars(self, make_bars):
        result = trend_before(_with_range(make_bars, [100.0] * 39), period=10, trend_period=30)

        assert result.direction == "sideways"
        assert result.days_before == 0
        assert not result.is_volatile

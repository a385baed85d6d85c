"""
Tests for technical indicators.
"""
import numpy as np
import pandas as pd
import pytest

from stockwatch.indicators.technical import (
    calculate_all,
    calculate_all_ma,
    calculate_ema,
    calculate_kdj,
    calculate_ma,
    calculate_macd,
    calculate_rsi,
    calculate_rsv,
)
from stockwatch.shared.types import Bar


@pytest.fixture
def sample_data():
    """Create sample OHLCV data for testing."""
    dates = pd.date_range('2020-01-01', periods=100, freq='D')
    np.random.seed(42)

    close = 100 + np.cumsum(np.random.randn(100) * 2)
    high = close + np.abs(np.random.randn(100))
    low = close - np.abs(np.random.randn(100))

    return pd.DataFrame({
        'Open': close + np.random.randn(100) * 0.5,
        'High': high,
        'Low': low,
        'Close': close,
        'Volume': np.random.randint(1000000, 10000000, 100),
    }, index=dates)


class TestMA:
    """Tests for the simple moving average."""

    def test_values_and_warmup(self, make_bars):
        """MA is NaN until the window fills, then the trailing mean."""
        ma = calculate_ma(make_bars([1, 2, 3, 4, 5]), 3)

        assert ma.iloc[:2].isna().all()
        assert ma.iloc[2:].tolist() == [2.0, 3.0, 4.0]

    def test_short_input_all_nan(self, make_bars):
        """Fewer bars than the period gives all NaN, never an error."""
        ma = calculate_ma(make_bars([1, 2]), 5)
        assert len(ma) == 2
        assert ma.isna().all()

    def test_accepts_bars(self):
        """A sequence of Bars is accepted as input."""
        bars = [
            Bar(time=pd.Timestamp('2024-01-01') + pd.Timedelta(days=i), open=c, close=c, high=c, low=c, volume=1)
            for i, c in enumerate([2.0, 4.0])
        ]
        assert calculate_ma(bars, 2).iloc[-1] == 3.0

    def test_invalid_period(self, make_bars):
        with pytest.raises(ValueError):
            calculate_ma(make_bars([1, 2, 3]), 0)

    def test_all_ma_keys(self, sample_data):
        """calculate_all_ma returns one series per period."""
        mas = calculate_all_ma(sample_data, (5, 20))
        assert set(mas) == {5, 20}
        assert mas[20].iloc[:19].isna().all()
        assert not np.isnan(mas[20].iloc[19])


class TestEMA:
    """Tests for the exponential moving average."""

    def test_seeded_with_first_value(self):
        """EMA[0] = x[0], then alpha = 2/(period+1)."""
        ema = calculate_ema([1.0, 2.0, 3.0], 3)
        assert ema.tolist() == pytest.approx([1.0, 1.5, 2.25])

    def test_constant_series(self):
        ema = calculate_ema(pd.Series([5.0] * 10), 4)
        assert (ema == 5.0).all()


class TestMACD:
    """Tests for MACD."""

    def test_constant_prices_zero(self, make_bars):
        """Flat prices give zero DIF, DEA and histogram."""
        dif, dea, macd = calculate_macd(make_bars([10.0] * 50))
        assert (dif.abs() < 1e-12).all()
        assert (dea.abs() < 1e-12).all()
        assert (macd.abs() < 1e-12).all()

    def test_formula(self, sample_data):
        """DIF = EMA12 - EMA26, DEA = EMA9(DIF), MACD = 2 * (DIF - DEA)."""
        dif, dea, macd = calculate_macd(sample_data)
        close = sample_data['Close']
        expected_dif = close.ewm(span=12, adjust=False).mean() - close.ewm(span=26, adjust=False).mean()
        expected_dea = expected_dif.ewm(span=9, adjust=False).mean()

        pd.testing.assert_series_equal(dif, expected_dif, check_names=False)
        pd.testing.assert_series_equal(dea, expected_dea, check_names=False)
        pd.testing.assert_series_equal(macd, (expected_dif - expected_dea) * 2, check_names=False)

    def test_uptrend_positive_dif(self, make_bars):
        dif, _, _ = calculate_macd(make_bars(np.linspace(100, 150, 60)))
        assert dif.iloc[-1] > 0


class TestKDJ:
    """Tests for the KDJ stochastic oscillator."""

    def test_first_value_smoothed_from_seed(self, make_bars):
        """The first valid RSV gets one smoothing step from 50."""
        bars = make_bars([9, 10, 11], highs=[10, 11, 12], lows=[8, 9, 10])
        k, d, j = calculate_kdj(bars, n=3)

        # RSV = (11 - 8) / (12 - 8) * 100 = 75
        assert k.iloc[:2].isna().all()
        assert k.iloc[2] == pytest.approx(175 / 3)
        assert d.iloc[2] == pytest.approx(475 / 9)
        assert j.iloc[2] == pytest.approx(625 / 9)

    def test_default_window_first_value(self, make_bars):
        """With the default 9-bar window the first K/D/J lands on bar 8."""
        closes = np.arange(1.0, 10.0)
        bars = make_bars(closes, highs=closes + 1, lows=closes - 1)
        k, d, j = calculate_kdj(bars)

        # RSV = (9 - 0) / (10 - 0) * 100 = 90
        assert k.iloc[:8].isna().all()
        assert d.iloc[:8].isna().all()
        assert k.iloc[8] == pytest.approx(190 / 3)
        assert d.iloc[8] == pytest.approx(490 / 9)
        assert j.iloc[8] == pytest.approx(730 / 9)

    def test_flat_window_rsv_zero(self, make_bars):
        """A window without range has RSV 0, not NaN."""
        bars = make_bars([10.0] * 5)
        rsv = calculate_rsv(bars, n=3)
        k, _, _ = calculate_kdj(bars, n=3)

        assert rsv.iloc[:2].isna().all()
        assert (rsv.iloc[2:] == 0).all()
        assert k.iloc[2] == pytest.approx(100 / 3)

    def test_n_one_starts_at_seed(self, make_bars):
        """With n=1 the first bar has an RSV and K/D start at exactly 50."""
        k, d, j = calculate_kdj(make_bars([10, 11], highs=[12, 12], lows=[8, 8]), n=1)
        assert k.iloc[0] == 50.0
        assert d.iloc[0] == 50.0
        assert j.iloc[0] == 50.0

    def test_short_input(self, make_bars):
        k, d, j = calculate_kdj(make_bars([1, 2]), n=9)
        assert k.isna().all() and d.isna().all() and j.isna().all()

    def test_range(self, sample_data):
        """K and D stay within 0..100."""
        k, d, _ = calculate_kdj(sample_data)
        valid_k = k.dropna()
        valid_d = d.dropna()
        assert ((valid_k >= 0) & (valid_k <= 100)).all()
        assert ((valid_d >= 0) & (valid_d <= 100)).all()


class TestRSI:
    """Tests for RSI with simple averages."""

    def test_warmup_nan(self, sample_data):
        """The first `period` positions are NaN."""
        rsi = calculate_rsi(sample_data, 6)
        assert rsi.iloc[:6].isna().all()
        assert rsi.iloc[6:].notna().all()

    def test_mixed_deltas(self, make_bars):
        """Deltas +1, -1, +2 over period 3: RS = 1 / (1/3) = 3, RSI = 75."""
        rsi = calculate_rsi(make_bars([10, 11, 10, 12]), 3)
        assert rsi.iloc[3] == pytest.approx(75.0)

    def test_no_losses(self, make_bars):
        """Only gains: the gain/loss ratio is capped at 100."""
        rsi = calculate_rsi(make_bars(np.arange(1, 21, dtype=float)), 6)
        assert rsi.iloc[-1] == pytest.approx(100 - 100 / 101)

    def test_range(self, sample_data):
        rsi = calculate_rsi(sample_data, 14).dropna()
        assert ((rsi >= 0) & (rsi <= 100)).all()


class TestCalculateAll:
    """Tests for the combined indicator frame."""

    def test_columns_and_alignment(self, sample_data):
        df = calculate_all(sample_data, ma_periods=(5, 10), rsi_periods=(6,))

        assert list(df.columns) == ['price', 'ma5', 'ma10', 'dif', 'dea', 'macd', 'k', 'd', 'j', 'rsi6']
        assert df.index.equals(sample_data.index)
        assert (df['price'] == sample_data['Close']).all()

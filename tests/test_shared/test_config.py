"""
Tests for analysis configuration and the YAML loader.
"""
import tempfile
from pathlib import Path

import pytest

from stockwatch.shared.config import AnalysisConfig, ConsolidationParams, SurgeParams
from stockwatch.shared.config_loader import (
    config_to_dict,
    load_config_from_yaml,
    save_config_to_yaml,
)


class TestAnalysisConfig:
    """Tests for AnalysisConfig defaults and validation."""

    def test_defaults(self):
        """Defaults match the documented scheduler settings."""
        config = AnalysisConfig()
        assert config.max_concurrency == 3
        assert config.batch_delay == 1.2
        assert config.chunk_size == 100
        assert config.count == 300
        assert config.consolidation.period == 10
        assert config.surge.volume_ratio_range == (1.5, 2.0)

    @pytest.mark.parametrize("kwargs", [
        {"max_concurrency": 0},
        {"batch_delay": -1},
        {"chunk_size": 0},
        {"count": 0},
    ])
    def test_invalid_values(self, kwargs):
        """Invalid values fail at construction."""
        with pytest.raises(ValueError):
            AnalysisConfig(**kwargs)

    def test_chunk_size_none_allowed(self):
        """chunk_size=None disables chunking."""
        assert AnalysisConfig(chunk_size=None).chunk_size is None

    def test_validate_after_mutation(self):
        """validate() catches values set after construction."""
        config = AnalysisConfig()
        config.max_concurrency = -2
        with pytest.raises(ValueError, match="max_concurrency"):
            config.validate()


class TestPatternParams:
    """Tests for consolidation/surge parameter validation."""

    def test_consolidation_period_too_small(self):
        with pytest.raises(ValueError, match="period"):
            ConsolidationParams(period=1)

    def test_consolidation_threshold_non_positive(self):
        with pytest.raises(ValueError, match="ma_spread_threshold"):
            ConsolidationParams(ma_spread_threshold=0)

    def test_surge_range_inverted(self):
        with pytest.raises(ValueError, match="volume_ratio_range"):
            SurgeParams(volume_ratio_range=(2.0, 1.5))

    def test_surge_range_open_upper(self):
        """None as the max leaves a band unbounded above."""
        params = SurgeParams(change_percent_range=(5.0, None))
        assert params.change_percent_range == (5.0, None)

    def test_surge_range_open_upper_negative_min(self):
        with pytest.raises(ValueError, match="change_percent_range"):
            SurgeParams(change_percent_range=(-1.0, None))


class TestYamlLoader:
    """Tests for load_config_from_yaml / save_config_to_yaml."""

    def test_load_partial_config(self):
        """Missing keys fall back to defaults."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "analysis.yaml"
            path.write_text(
                "scheduler:\n"
                "  max_concurrency: 5\n"
                "  chunk_size: null\n"
                "surge:\n"
                "  period: 15\n"
                "  change_percent_range: [4, 12]\n"
            )
            config = load_config_from_yaml(path)

        assert config.max_concurrency == 5
        assert config.chunk_size is None
        assert config.batch_delay == 1.2
        assert config.surge.period == 15
        assert config.surge.change_percent_range == (4.0, 12.0)
        assert config.consolidation.price_volatility_threshold == 5.0

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_config_from_yaml("/nonexistent/analysis.yaml")

    def test_empty_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.yaml"
            path.write_text("")
            with pytest.raises(ValueError, match="Empty"):
                load_config_from_yaml(path)

    def test_not_a_mapping(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "list.yaml"
            path.write_text("- a\n- b\n")
            with pytest.raises(ValueError, match="mapping"):
                load_config_from_yaml(path)

    def test_invalid_value_rejected(self):
        """Values are validated after loading."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.yaml"
            path.write_text("scheduler:\n  batch_delay: -3\n")
            with pytest.raises(ValueError, match="batch_delay"):
                load_config_from_yaml(path)

    def test_bad_range_shape(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "bad.yaml"
            path.write_text("surge:\n  volume_ratio_range: 1.5\n")
            with pytest.raises(ValueError, match="volume_ratio_range"):
                load_config_from_yaml(path)

    def test_open_upper_range(self):
        """A null max in YAML loads as an open band and saves back as null."""
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "analysis.yaml"
            path.write_text("surge:\n  change_percent_range: [5, null]\n")
            config = load_config_from_yaml(path)

            assert config.surge.change_percent_range == (5.0, None)

            saved = Path(tmpdir) / "saved.yaml"
            save_config_to_yaml(config, saved)
            assert load_config_from_yaml(saved).surge.change_percent_range == (5.0, None)

    def test_save_then_load(self):
        """A saved config loads back equal."""
        config = AnalysisConfig(max_concurrency=4, batch_delay=0.5, chunk_size=50)
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "nested" / "analysis.yaml"
            save_config_to_yaml(config, path)
            loaded = load_config_from_yaml(path)

        assert config_to_dict(loaded) == config_to_dict(config)

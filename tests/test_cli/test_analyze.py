"""
Tests for the analyze CLI.

Verifies config precedence (CLI > config file > defaults) and that main()
runs an analysis end to end with the data source patched out.
"""
import tempfile
from pathlib import Path
from unittest.mock import patch

import pandas as pd
import pytest

from cli.analyze import build_config, main, parse_args


class TestConfigPrecedence:
    """Test config precedence: CLI > Config > Default"""

    def test_defaults(self):
        config = build_config(parse_args(["AAPL"]))
        assert config.max_concurrency == 3
        assert config.chunk_size == 100

    def test_config_file_used(self):
        """Values from configs/analysis.yaml apply when no CLI overrides are given."""
        config = build_config(parse_args(["AAPL", "--config", "configs/analysis.yaml"]))
        assert config.batch_delay == 1.2
        assert config.surge.change_percent_range == (5.0, 10.0)

    def test_cli_overrides_config(self):
        args = parse_args([
            "AAPL", "--config", "configs/analysis.yaml",
            "--max-concurrency", "5", "--batch-delay", "0", "--count", "120",
        ])
        config = build_config(args)

        assert config.max_concurrency == 5
        assert config.batch_delay == 0.0
        assert config.count == 120

    def test_chunk_size_zero_disables_chunking(self):
        config = build_config(parse_args(["AAPL", "--chunk-size", "0"]))
        assert config.chunk_size is None

    def test_invalid_override(self):
        with pytest.raises(ValueError):
            build_config(parse_args(["AAPL", "--max-concurrency", "0"]))


class TestParseArgs:
    """Tests for argument parsing."""

    def test_symbols_and_period(self):
        args = parse_args(["AAPL", "MSFT", "--period", "week"])
        assert args.symbols == ["AAPL", "MSFT"]
        assert args.period == "week"

    def test_unknown_period(self):
        with pytest.raises(SystemExit):
            parse_args(["AAPL", "--period", "fortnight"])


class TestMain:
    """Tests for main() with the Yahoo source replaced by the in-memory fake."""

    def test_writes_results(self, fake_source):
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "out" / "results.csv"
            with patch("cli.analyze.YahooDataSource", return_value=fake_source(fail_series={"BAD"})), \
                    patch("cli.analyze.setup_logging"):
                code = main(["AAPL", "BAD", "--batch-delay", "0", "--output", str(output)])

            assert code == 0
            table = pd.read_csv(output, index_col="code")

        assert list(table.index) == ["AAPL", "BAD"]
        assert pd.isna(table.loc["AAPL", "error"])
        assert "series fetch failed" in table.loc["BAD", "error"]

    def test_price_filter(self, fake_source, capsys):
        source = fake_source(prices={"CHEAP": 1.0})
        with patch("cli.analyze.YahooDataSource", return_value=source), \
                patch("cli.analyze.setup_logging"):
            code = main(["AAPL", "CHEAP", "--batch-delay", "0", "--min-price", "10"])

        assert code == 0
        assert "Skipped by price: 1" in capsys.readouterr().out

    def test_bad_config_file(self, capsys):
        with patch("cli.analyze.setup_logging"):
            code = main(["AAPL", "--config", "/nonexistent/analysis.yaml"])

        assert code == 1
        assert "Config file not found" in capsys.readouterr().err

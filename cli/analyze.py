#!/usr/bin/env python3
"""
Batch analysis of watched stocks.

Fetches quotes, fundamentals and bars for each symbol, computes indicator
summaries and pattern classifications, and prints (or saves) one row per
symbol. Requests are made in rate-limited waves; Ctrl-C cancels
cooperatively and still reports what finished.

Usage:
    python -m cli.analyze AAPL MSFT NVDA
    python -m cli.analyze AAPL MSFT --period week --count 200 --output results.csv
    python -m cli.analyze $(cat watchlist.txt) --config configs/analysis.yaml --min-price 10
"""
import sys
import signal
import logging
import argparse
from concurrent.futures import wait
from pathlib import Path
from typing import List, Optional

import pandas as pd

from stockwatch.data.yahoo import YahooDataSource
from stockwatch.orchestration.pipeline import analyze
from stockwatch.shared.config import AnalysisConfig
from stockwatch.shared.config_loader import load_config_from_yaml, config_to_dict
from stockwatch.shared.types import KLinePeriod, PriceFilter, ProgressSnapshot, results_to_frame

SUMMARY_COLUMNS = [
    "name", "price", "change_percent", "drawdown_percent",
    "kdj_k", "kdj_d", "kdj_j", "consolidation", "trend_before", "error",
]


def setup_logging(log_path: Optional[Path] = None, verbose: bool = False):
    """
    Setup logging to stdout and optionally to file.

    Args:
        log_path: Path to log file (None = stdout only)
        verbose: If True, use DEBUG level, otherwise INFO
    """
    level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # yfinance logs every missing symbol at ERROR; those surface as per-symbol failures instead
    logging.getLogger("yfinance").setLevel(logging.CRITICAL)


def print_progress(progress: ProgressSnapshot) -> None:
    print(
        f"  [{progress.settled}/{progress.total}] {progress.percent:6.2f}%"
        f"  completed: {progress.completed}  failed: {progress.failed}",
        flush=True,
    )


def build_config(args: argparse.Namespace) -> AnalysisConfig:
    """Config file (or defaults) with command-line overrides applied."""
    config = load_config_from_yaml(args.config) if args.config else AnalysisConfig()
    if args.chunk_size is not None:
        config.chunk_size = args.chunk_size if args.chunk_size > 0 else None
    if args.max_concurrency is not None:
        config.max_concurrency = args.max_concurrency
    if args.batch_delay is not None:
        config.batch_delay = args.batch_delay
    if args.count is not None:
        config.count = args.count
    config.validate()
    return config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Batch technical analysis of stocks (indicators, consolidation, volume surges)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("symbols", nargs="+", help="Symbols to analyze (e.g. AAPL MSFT)")
    parser.add_argument(
        "--period",
        choices=[p.value for p in KLinePeriod],
        default=KLinePeriod.DAY.value,
        help="Bar period for the analysis series (default: day)",
    )
    parser.add_argument("--count", type=int, default=None, help="Bars per symbol (default: 300)")
    parser.add_argument("--config", type=str, default=None, help="YAML config file")
    parser.add_argument(
        "--chunk-size", type=int, default=None,
        help="Symbols per quote request (default: 100; 0 = single chunk)",
    )
    parser.add_argument("--max-concurrency", type=int, default=None, help="Tasks per wave (default: 3)")
    parser.add_argument("--batch-delay", type=float, default=None, help="Seconds between waves (default: 1.2)")
    parser.add_argument("--min-price", type=float, default=None, help="Skip symbols priced below this")
    parser.add_argument("--max-price", type=float, default=None, help="Skip symbols priced above this")
    parser.add_argument("--output", type=str, default=None, help="Write the results table to this CSV file")
    parser.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging (DEBUG level)")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(Path(args.log_file) if args.log_file else None, args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = build_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    price_filter = None
    if args.min_price is not None or args.max_price is not None:
        price_filter = PriceFilter(min_price=args.min_price, max_price=args.max_price)

    logger.debug(f"Config: {config_to_dict(config)}")

    handle = analyze(
        YahooDataSource(),
        args.symbols,
        period=args.period,
        count=config.count,
        config=config,
        on_progress=print_progress,
        price_filter=price_filter,
    )

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, cancelling (running requests will finish)...")
        handle.cancel()

    previous_handler = signal.signal(signal.SIGINT, signal_handler)
    try:
        # Poll so the signal handler gets a chance to run on the main thread
        while not handle.done():
            wait([handle.future], timeout=0.5)
        result = handle.result()
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    table = results_to_frame(result.results)

    print()
    print("=" * 80)
    print(f"Analyzed: {len(result.succeeded)}  Failed: {len(result.failed)}  "
          f"Skipped by price: {len(result.skipped)}" + ("  (cancelled)" if result.cancelled else ""))
    print("=" * 80)
    if not table.empty:
        columns = [c for c in SUMMARY_COLUMNS if c in table.columns]
        with pd.option_context("display.max_rows", None, "display.width", 160):
            print(table[columns].to_string())

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        table.to_csv(output_path)
        print(f"\nResults saved to: {output_path}")

    return 130 if result.cancelled else 0


if __name__ == "__main__":
    sys.exit(main())

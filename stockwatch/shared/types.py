"""
Shared types for the batch analysis engine.

This module consolidates the market data records (Bar, Quote, Detail),
progress snapshots and per-symbol outcomes that are passed between the
data sources, the indicator/pattern functions and the orchestrator.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

if TYPE_CHECKING:
    from ..patterns.pattern_types import ConsolidationResult, SurgePatternAnalysis


OHLCV_COLUMNS = ["Open", "High", "Low", "Close", "Volume"]


class KLinePeriod(Enum):
    """Bar granularity understood by data sources."""
    MIN_1 = "1min"
    MIN_5 = "5min"
    MIN_15 = "15min"
    MIN_30 = "30min"
    MIN_60 = "60min"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def is_intraday(self) -> bool:
        return self.value.endswith("min")

    @classmethod
    def parse(cls, value: Union[str, "KLinePeriod"]) -> "KLinePeriod":
        """Accept an enum member or its string value ("day", "5min", ...)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown period '{value}' (expected one of: {valid})") from None


@dataclass(frozen=True)
class Bar:
    """One OHLCV sample. A symbol's bars are strictly increasing in time."""
    time: pd.Timestamp
    open: float
    close: float
    high: float
    low: float
    volume: float


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """Convert a sequence of Bars to an OHLCV DataFrame indexed by time."""
    if not bars:
        return pd.DataFrame(columns=OHLCV_COLUMNS, index=pd.DatetimeIndex([], name="Date"), dtype=float)
    df = pd.DataFrame(
        {
            "Open": [float(b.open) for b in bars],
            "High": [float(b.high) for b in bars],
            "Low": [float(b.low) for b in bars],
            "Close": [float(b.close) for b in bars],
            "Volume": [float(b.volume) for b in bars],
        },
        index=pd.DatetimeIndex([pd.Timestamp(b.time) for b in bars], name="Date"),
    )
    return df


def as_frame(bars: Union[pd.DataFrame, Sequence[Bar], None]) -> pd.DataFrame:
    """
    Normalize indicator/pattern input to an OHLCV DataFrame.

    Accepts a DataFrame with OHLCV columns (returned as-is) or a sequence of
    Bars. None becomes an empty frame so callers can always request values.
    """
    if bars is None:
        return bars_to_frame([])
    if isinstance(bars, pd.DataFrame):
        return bars
    return bars_to_frame(list(bars))


@dataclass(frozen=True)
class Quote:
    """Current snapshot for one symbol. Superseded by newer quotes, never mutated."""
    code: str
    name: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    open: float = 0.0
    prev_close: float = 0.0
    high: float = 0.0
    low: float = 0.0
    volume: float = 0.0
    amount: float = 0.0
    timestamp: Optional[pd.Timestamp] = None


@dataclass(frozen=True)
class Detail:
    """Fundamentals snapshot. Every field except code may be missing."""
    code: str
    market_cap: Optional[float] = None
    circulating_market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None
    turnover_rate: Optional[float] = None
    volume_ratio: Optional[float] = None
    timestamp: Optional[pd.Timestamp] = None


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress of one run; counters never decrease within a run."""
    total: int
    completed: int = 0
    failed: int = 0
    percent: float = 0.0

    @classmethod
    def from_counts(cls, total: int, completed: int, failed: int) -> "ProgressSnapshot":
        settled = completed + failed
        percent = round(settled / total * 100, 2) if total > 0 else 0.0
        return cls(total=total, completed=completed, failed=failed, percent=percent)

    @property
    def settled(self) -> int:
        return self.completed + self.failed


@dataclass(frozen=True)
class PriceFilter:
    """Inclusive price band applied to quotes before per-symbol analysis."""
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    def accepts(self, price: float) -> bool:
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        return True


@dataclass(frozen=True)
class AnalysisRecord:
    """Successful per-symbol analysis."""
    code: str
    name: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: float = 0.0
    amount: float = 0.0

    # Fundamentals (absent when the detail fetch failed)
    market_cap: Optional[float] = None
    circulating_market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None
    turnover_rate: Optional[float] = None

    # Window summary
    avg_price: Optional[float] = None
    high_price: Optional[float] = None
    low_price: Optional[float] = None
    drawdown_percent: Optional[float] = None  # (price - high) / high * 100

    # Latest indicator values
    kdj_k: Optional[float] = None
    kdj_d: Optional[float] = None
    kdj_j: Optional[float] = None
    macd_dif: Optional[float] = None
    macd_dea: Optional[float] = None
    macd: Optional[float] = None
    rsi: Mapping[int, Optional[float]] = field(default_factory=dict)
    ma_values: Mapping[int, Optional[float]] = field(default_factory=dict)
    ma_deviation: Mapping[int, Optional[float]] = field(default_factory=dict)  # price vs MA, percent
    recent_changes: Mapping[str, Optional[float]] = field(default_factory=dict)

    consolidation: Optional["ConsolidationResult"] = None
    surge_patterns: Optional["SurgePatternAnalysis"] = None
    bar_count: int = 0
    analyzed_at: Optional[datetime] = None

    def __post_init__(self):
        # Read-only views over private copies
        for name in ("rsi", "ma_values", "ma_deviation", "recent_changes"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @property
    def ok(self) -> bool:
        return True

    def to_row(self) -> Dict[str, Any]:
        """Flatten to a single table row (CSV export)."""
        row: Dict[str, Any] = {
            "code": self.code,
            "name": self.name,
            "price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "volume": self.volume,
            "amount": self.amount,
            "market_cap": self.market_cap,
            "circulating_market_cap": self.circulating_market_cap,
            "pe_ratio": self.pe_ratio,
            "turnover_rate": self.turnover_rate,
            "avg_price": self.avg_price,
            "high_price": self.high_price,
            "low_price": self.low_price,
            "drawdown_percent": self.drawdown_percent,
            "kdj_k": self.kdj_k,
            "kdj_d": self.kdj_d,
            "kdj_j": self.kdj_j,
            "macd_dif": self.macd_dif,
            "macd_dea": self.macd_dea,
            "macd": self.macd,
        }
        for p, v in self.rsi.items():
            row[f"rsi{p}"] = v
        for p, v in self.ma_deviation.items():
            row[f"ma{p}_pct"] = v
        row.update(self.recent_changes)
        if self.consolidation is not None:
            row["consolidation"] = self.consolidation.combined.is_consolidation
            row["consolidation_strength"] = self.consolidation.combined.strength
            row["volume_ratio_pct"] = self.consolidation.volume_analysis.avg_volume_ratio
            if self.consolidation.trend_before is not None:
                row["trend_before"] = self.consolidation.trend_before.direction
        if self.surge_patterns is not None:
            row["surge_drops"] = self.surge_patterns.drop_count
            row["surge_rises"] = self.surge_patterns.rise_count
        row["bar_count"] = self.bar_count
        row["error"] = None
        return row


@dataclass(frozen=True)
class SymbolError:
    """
    Failed per-symbol analysis.

    Always authoritative failure. When a quote was available its price,
    volume and amount are kept as context (None otherwise).
    """
    code: str
    name: str
    error: str
    price: Optional[float] = None
    volume: Optional[float] = None
    amount: Optional[float] = None
    analyzed_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_quote(cls, quote: Quote, error: str, name: Optional[str] = None) -> "SymbolError":
        return cls(
            code=quote.code,
            name=quote.name or name or quote.code,
            error=error,
            price=quote.price,
            volume=quote.volume,
            amount=quote.amount,
            analyzed_at=datetime.now(),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "price": self.price,
            "volume": self.volume,
            "amount": self.amount,
            "error": self.error,
        }


AnalysisOutcome = Union[AnalysisRecord, SymbolError]


@dataclass
class AnalysisResult:
    """Everything one orchestration run produced."""
    results: List[AnalysisOutcome] = field(default_factory=list)
    errors: List[Tuple[str, str]] = field(default_factory=list)  # (symbol, error message)
    skipped: List[str] = field(default_factory=list)  # Filtered out by price
    cancelled: bool = False

    @property
    def succeeded(self) -> List[AnalysisRecord]:
        return [r for r in self.results if isinstance(r, AnalysisRecord)]

    @property
    def failed(self) -> List[SymbolError]:
        return [r for r in self.results if isinstance(r, SymbolError)]

    def to_frame(self) -> pd.DataFrame:
        """One row per outcome, failures included."""
        return results_to_frame(self.results)


def results_to_frame(results: Sequence[AnalysisOutcome]) -> pd.DataFrame:
    """Tabulate outcomes, one row per symbol, indexed by code."""
    if not results:
        return pd.DataFrame(columns=["code", "name", "price", "error"]).set_index("code")
    return pd.DataFrame([r.to_row() for r in results]).set_index("code")


def finite_or_none(value: Any, digits: Optional[int] = None) -> Optional[float]:
    """Return value as float if finite, else None; optionally rounded."""
    if value is None:
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(v):
        return None
    return round(v, digits) if digits is not None else v

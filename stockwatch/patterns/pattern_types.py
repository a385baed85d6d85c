"""
Pattern result types: consolidation, trend-before and volume-surge records.

Kept apart from the detectors so the shared outcome types can reference
them without importing the detection code.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class PriceVolatility:
    is_consolidation: bool = False
    volatility: float = 0.0  # (high - low) / avg close, percent
    strength: float = 0.0  # 0..100


@dataclass(frozen=True)
class MAConvergence:
    is_consolidation: bool = False
    ma_spread: float = 0.0  # max |MA - avg(MA)| / avg(MA), percent
    strength: float = 0.0
    ma_periods: Tuple[int, int, int] = (5, 10, 20)


@dataclass(frozen=True)
class CombinedConsolidation:
    is_consolidation: bool = False
    strength: float = 0.0


@dataclass(frozen=True)
class VolumeAnalysis:
    avg_volume_ratio: float = 100.0  # Recent avg / preceding avg, percent
    is_volume_shrinking: bool = False


@dataclass(frozen=True)
class PricePosition:
    relative_to_high: float = 0.0  # Percent below the window high
    relative_to_low: float = 0.0  # Percent above the window low
    position_in_range: float = 50.0  # 0 = at low, 100 = at high
    recent_high: float = 0.0
    recent_low: float = 0.0


@dataclass(frozen=True)
class TrendBefore:
    """Shape of the price path leading into the consolidation window."""
    direction: str = "sideways"  # "up", "down", "sideways" or "volatile"
    change_percent: float = 0.0
    days_before: int = 0
    has_deep_drop: bool = False
    has_rebound: bool = False
    has_up_then_down: bool = False
    is_volatile: bool = False
    volatile_type: Optional[str] = None  # up_down, down_up, sideways_up, sideways_down, multiple


@dataclass(frozen=True)
class ConsolidationResult:
    price_volatility: PriceVolatility
    ma_convergence: MAConvergence
    combined: CombinedConsolidation
    volume_analysis: VolumeAnalysis
    price_position: Optional[PricePosition] = None
    trend_before: Optional[TrendBefore] = None


@dataclass(frozen=True)
class SurgePeriod:
    """A window of `days` bars with an outsized close-to-close move on heavy volume."""
    start_index: int
    end_index: int
    start_price: float
    end_price: float
    change_percent: float
    avg_volume_ratio: float
    intensity: str  # "light", "medium" or "heavy"
    days: int


@dataclass(frozen=True)
class ConsolidationSpan:
    start_index: int
    end_index: int
    strength: float
    days: int


@dataclass(frozen=True)
class FollowThrough:
    start_index: int
    end_index: int
    change_percent: float
    avg_volume_ratio: float


@dataclass(frozen=True)
class AfterSurge:
    """What happened after a surge: none, consolidation, or consolidation then a reversal."""
    type: str = "none"
    consolidation: Optional[ConsolidationSpan] = None
    follow_through: Optional[FollowThrough] = None


@dataclass(frozen=True)
class SurgePatternAnalysis:
    drop_periods: List[SurgePeriod] = field(default_factory=list)
    rise_periods: List[SurgePeriod] = field(default_factory=list)
    after_drop: List[Tuple[SurgePeriod, AfterSurge]] = field(default_factory=list)
    after_rise: List[Tuple[SurgePeriod, AfterSurge]] = field(default_factory=list)

    @property
    def drop_count(self) -> int:
        return len(self.drop_periods)

    @property
    def rise_count(self) -> int:
        return len(self.rise_periods)

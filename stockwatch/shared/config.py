"""
Analysis configuration.

Scheduler, chunking and pattern parameters for one batch run. Validation
runs at construction time (fail fast with clear errors).
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .defaults import (
    MAX_CONCURRENCY, BATCH_DELAY, CHUNK_SIZE, SERIES_COUNT,
    CONSOLIDATION_PERIOD, PRICE_VOLATILITY_THRESHOLD, MA_SPREAD_THRESHOLD,
    VOLUME_SHRINKING_THRESHOLD, TREND_PERIOD,
    SURGE_PERIOD, SURGE_VOLUME_RATIO_RANGE, SURGE_CHANGE_PERCENT_RANGE,
)


def _validate_range(name: str, value: Tuple[float, Optional[float]]) -> None:
    if len(value) != 2:
        raise ValueError(f"{name} must be a (min, max) pair, got {value}")
    low, high = value
    if low is None or low < 0:
        raise ValueError(f"{name} min must be >= 0, got {value}")
    # None as max leaves the band open upward
    if high is not None and high < low:
        raise ValueError(f"{name} must satisfy 0 <= min <= max, got {value}")


@dataclass(frozen=True)
class ConsolidationParams:
    """Thresholds for range-compression (consolidation) detection."""
    period: int = CONSOLIDATION_PERIOD
    price_volatility_threshold: float = PRICE_VOLATILITY_THRESHOLD  # Percent
    ma_spread_threshold: float = MA_SPREAD_THRESHOLD  # Percent
    volume_shrinking_threshold: float = VOLUME_SHRINKING_THRESHOLD  # Percent
    trend_period: int = TREND_PERIOD

    def __post_init__(self) -> None:
        if self.period < 2:
            raise ValueError(f"consolidation period must be >= 2, got {self.period}")
        if self.trend_period < 1:
            raise ValueError(f"trend_period must be >= 1, got {self.trend_period}")
        for name in ("price_volatility_threshold", "ma_spread_threshold", "volume_shrinking_threshold"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0, got {getattr(self, name)}")


@dataclass(frozen=True)
class SurgeParams:
    """Windows and bands for volume-surge detection."""
    period: int = SURGE_PERIOD
    volume_ratio_range: Tuple[float, Optional[float]] = SURGE_VOLUME_RATIO_RANGE
    change_percent_range: Tuple[float, Optional[float]] = SURGE_CHANGE_PERCENT_RANGE
    consolidation: ConsolidationParams = field(default_factory=ConsolidationParams)

    def __post_init__(self) -> None:
        if self.period < 2:
            raise ValueError(f"surge period must be >= 2, got {self.period}")
        _validate_range("volume_ratio_range", self.volume_ratio_range)
        _validate_range("change_percent_range", self.change_percent_range)


@dataclass
class AnalysisConfig:
    """Complete configuration for one batch analysis run."""
    max_concurrency: int = MAX_CONCURRENCY
    batch_delay: float = BATCH_DELAY  # Seconds between waves
    chunk_size: Optional[int] = CHUNK_SIZE  # None = single quote fetch, single scheduler
    count: int = SERIES_COUNT
    consolidation: ConsolidationParams = field(default_factory=ConsolidationParams)
    surge: SurgeParams = field(default_factory=SurgeParams)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ValueError with a clear message on invalid values."""
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        if self.batch_delay < 0:
            raise ValueError(f"batch_delay must be >= 0, got {self.batch_delay}")
        if self.chunk_size is not None and self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1 or None, got {self.chunk_size}")
        if self.count < 1:
            raise ValueError(f"count must be >= 1, got {self.count}")

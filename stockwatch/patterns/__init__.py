"""
Pattern detection module.

Provides:
- Consolidation detection (price volatility, MA convergence, volume, position)
- Trend-before classification
- Volume surge detection and after-surge follow-through
"""
from .pattern_types import (
    PriceVolatility,
    MAConvergence,
    CombinedConsolidation,
    VolumeAnalysis,
    PricePosition,
    TrendBefore,
    ConsolidationResult,
    SurgePeriod,
    AfterSurge,
    SurgePatternAnalysis,
)
from .consolidation import (
    price_volatility,
    ma_convergence,
    volume_analysis,
    price_position,
    calculate_consolidation,
)
from .trend import trend_before
from .surge import detect_volume_surges, analyze_after_surge, analyze_volume_surge_patterns

__all__ = [
    'PriceVolatility',
    'MAConvergence',
    'CombinedConsolidation',
    'VolumeAnalysis',
    'PricePosition',
    'TrendBefore',
    'ConsolidationResult',
    'SurgePeriod',
    'AfterSurge',
    'SurgePatternAnalysis',
    'price_volatility',
    'ma_convergence',
    'volume_analysis',
    'price_position',
    'calculate_consolidation',
    'trend_before',
    'detect_volume_surges',
    'analyze_after_surge',
    'analyze_volume_surge_patterns',
]

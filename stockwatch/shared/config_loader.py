"""
YAML configuration loader for batch analysis runs.

Loads scheduler and pattern parameters from YAML files so runs can be
tuned without code changes. Missing keys fall back to the defaults.
"""
import yaml
from pathlib import Path
from typing import Any, Dict, Union

from .config import AnalysisConfig, ConsolidationParams, SurgeParams
from .defaults import *


def load_config_from_yaml(yaml_path: Union[str, Path]) -> AnalysisConfig:
    """
    Load analysis configuration from YAML file.

    Expected layout (every section and key optional)::

        scheduler: {max_concurrency, batch_delay, chunk_size, count}
        consolidation: {period, price_volatility_threshold, ma_spread_threshold,
                        volume_shrinking_threshold, trend_period}
        surge: {period, volume_ratio_range, change_percent_range}

    Args:
        yaml_path: Path to YAML configuration file

    Returns:
        AnalysisConfig object

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValueError: If YAML is empty, not a mapping, or holds invalid values
    """
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(yaml_path, 'r') as f:
        config_dict = yaml.safe_load(f)

    if not config_dict:
        raise ValueError(f"Empty config file: {yaml_path}")
    if not isinstance(config_dict, dict):
        raise ValueError(f"Config file must contain a mapping: {yaml_path}")

    scheduler = config_dict.get('scheduler', {}) or {}
    consolidation = config_dict.get('consolidation', {}) or {}
    surge = config_dict.get('surge', {}) or {}

    consolidation_params = ConsolidationParams(
        period=int(consolidation.get('period', CONSOLIDATION_PERIOD)),
        price_volatility_threshold=float(
            consolidation.get('price_volatility_threshold', PRICE_VOLATILITY_THRESHOLD)
        ),
        ma_spread_threshold=float(consolidation.get('ma_spread_threshold', MA_SPREAD_THRESHOLD)),
        volume_shrinking_threshold=float(
            consolidation.get('volume_shrinking_threshold', VOLUME_SHRINKING_THRESHOLD)
        ),
        trend_period=int(consolidation.get('trend_period', TREND_PERIOD)),
    )

    surge_params = SurgeParams(
        period=int(surge.get('period', SURGE_PERIOD)),
        volume_ratio_range=_pair(surge.get('volume_ratio_range', SURGE_VOLUME_RATIO_RANGE), 'volume_ratio_range'),
        change_percent_range=_pair(
            surge.get('change_percent_range', SURGE_CHANGE_PERCENT_RANGE), 'change_percent_range'
        ),
        consolidation=consolidation_params,
    )

    chunk_size = scheduler.get('chunk_size', CHUNK_SIZE)

    return AnalysisConfig(
        max_concurrency=int(scheduler.get('max_concurrency', MAX_CONCURRENCY)),
        batch_delay=float(scheduler.get('batch_delay', BATCH_DELAY)),
        chunk_size=None if chunk_size is None else int(chunk_size),
        count=int(scheduler.get('count', SERIES_COUNT)),
        consolidation=consolidation_params,
        surge=surge_params,
    )


def _pair(value: Any, name: str):
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"{name} must be a [min, max] list, got {value!r}")
    low, high = value
    return (float(low), None if high is None else float(high))


def config_to_dict(config: AnalysisConfig) -> Dict[str, Any]:
    """Nested dict in the same layout load_config_from_yaml reads."""
    return {
        'scheduler': {
            'max_concurrency': config.max_concurrency,
            'batch_delay': config.batch_delay,
            'chunk_size': config.chunk_size,
            'count': config.count,
        },
        'consolidation': {
            'period': config.consolidation.period,
            'price_volatility_threshold': config.consolidation.price_volatility_threshold,
            'ma_spread_threshold': config.consolidation.ma_spread_threshold,
            'volume_shrinking_threshold': config.consolidation.volume_shrinking_threshold,
            'trend_period': config.consolidation.trend_period,
        },
        'surge': {
            'period': config.surge.period,
            'volume_ratio_range': list(config.surge.volume_ratio_range),
            'change_percent_range': list(config.surge.change_percent_range),
        },
    }


def save_config_to_yaml(config: AnalysisConfig, yaml_path: Union[str, Path]):
    """
    Save analysis configuration to YAML file.

    Args:
        config: AnalysisConfig object to save
        yaml_path: Path where to save YAML file
    """
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    with open(yaml_path, 'w') as f:
        yaml.dump(config_to_dict(config), f, default_flow_style=False, sort_keys=False)

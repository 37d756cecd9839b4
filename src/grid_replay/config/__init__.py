"""Strategy configuration modules"""

from grid_replay.config.loader import load_strategy_config, strategy_config_from_dict
from grid_replay.config.schemas import StrategyConfig

__all__ = [
    "StrategyConfig",
    "load_strategy_config",
    "strategy_config_from_dict",
]

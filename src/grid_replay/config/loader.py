"""
Strategy configuration loading from YAML files and plain mappings.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import ValidationError

from grid_replay.config.schemas import StrategyConfig
from grid_replay.exceptions import ConfigurationError
from grid_replay.logging import get_logger

logger = get_logger(__name__)


def strategy_config_from_dict(
    raw_config: Mapping[str, Any] | None,
    **overrides: Any,
) -> StrategyConfig:
    """
    Validate a mapping into a StrategyConfig.

    Options may sit at the top level or under a ``strategy`` key. Keyword
    overrides whose value is None are ignored, which lets CLI flags fall
    back to the file.

    Raises:
        ConfigurationError: If any option is invalid
    """
    data: dict[str, Any] = dict(raw_config or {})
    if isinstance(data.get("strategy"), Mapping):
        data = dict(data["strategy"])

    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = StrategyConfig.model_validate(data)
    except ValidationError as e:
        logger.error("Strategy configuration rejected", errors=e.error_count())
        raise ConfigurationError(f"Invalid strategy configuration: {e}") from e

    return config


def load_strategy_config(path: Path, **overrides: Any) -> StrategyConfig:
    """
    Load and validate a strategy configuration from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            raw_config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("Failed to parse YAML", path=str(path), error=str(e))
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    if raw_config is not None and not isinstance(raw_config, Mapping):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")

    config = strategy_config_from_dict(raw_config, **overrides)

    logger.info(
        "Strategy configuration loaded",
        path=str(path),
        symbol=config.symbol,
        interval=config.interval,
        order_qty=config.order_qty,
    )

    return config

"""Grid replay engine — models, simulator, reporter."""

from grid_replay.engine.models import (
    Candle,
    Position,
    SimulationState,
    SimulationStats,
    TradeRecord,
    TradeType,
)
from grid_replay.engine.simulator import GridStrategySimulator, run_grid_strategy
from grid_replay.engine.reporter import GridReplayReporter

__all__ = [
    "Candle",
    "Position",
    "SimulationState",
    "SimulationStats",
    "TradeRecord",
    "TradeType",
    "GridStrategySimulator",
    "run_grid_strategy",
    "GridReplayReporter",
]

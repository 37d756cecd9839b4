"""
GridReplayReporter — Result summaries and export.

Generates:
- Summary dict of a finished run (balances, profit, counts, fees)
- Human-readable summary lines for console output
- JSON export of the full run (including the trade ledger) and YAML summary
"""

import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from grid_replay.config.schemas import StrategyConfig
from grid_replay.core.calculator import GridCalculator, round_half_up
from grid_replay.engine.models import SimulationState
from grid_replay.logging import get_logger

logger = get_logger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that writes Decimal values as strings."""

    def default(self, o: Any) -> Any:
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


class GridReplayReporter:
    """Builds reports from a finished simulation state."""

    def summary(self, state: SimulationState, config: StrategyConfig) -> dict[str, Any]:
        """Summary of a run, money rounded to cents."""
        stats = state.stats
        return {
            "symbol": config.symbol,
            "interval": config.interval,
            "candles_processed": state.candles_processed,
            "initial_balance": round_half_up(config.initial_amount, 2),
            "final_balance": round_half_up(state.balance, 2),
            "available_balance": round_half_up(state.available_balance, 2),
            "total_profit": round_half_up(state.total_profit, 2),
            "total_trades": stats.total_trades,
            "profitable_trades": stats.profitable_trades,
            "unprofitable_trades": stats.unprofitable_trades,
            "total_fees": round_half_up(stats.total_fees, 2),
            "open_positions": len(state.open_positions),
            "grid_step": GridCalculator.step_size(state.entry_levels, state.exit_levels),
        }

    def format_summary(self, state: SimulationState, config: StrategyConfig) -> list[str]:
        """Console summary lines."""
        s = self.summary(state, config)
        return [
            f"Strategy results for {s['symbol']} ({s['interval']}, {s['candles_processed']} candles):",
            f"  Initial balance:     ${s['initial_balance']}",
            f"  Final balance:       ${s['final_balance']}",
            f"  Available balance:   ${s['available_balance']}",
            f"  Total profit:        ${s['total_profit']}",
            f"  Total trades:        {s['total_trades']}",
            f"  Profitable trades:   {s['profitable_trades']}",
            f"  Unprofitable trades: {s['unprofitable_trades']}",
            f"  Total fees:          ${s['total_fees']}",
            f"  Open positions:      {s['open_positions']}",
        ]

    def build_record(self, state: SimulationState, config: StrategyConfig) -> dict[str, Any]:
        """Full run record: config, summary and complete state."""
        return {
            "config": config.model_dump(mode="json"),
            "summary": self.summary(state, config),
            "state": state.to_dict(include_trades=True),
        }

    def export_result_json(self, state: SimulationState, config: StrategyConfig) -> str:
        return json.dumps(self.build_record(state, config), cls=DecimalEncoder, indent=2)

    def export_result_yaml(self, state: SimulationState, config: StrategyConfig) -> str:
        """YAML summary (no ledger) for quick inspection."""
        record = {
            "config": config.model_dump(mode="json"),
            "summary": {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.summary(state, config).items()
            },
        }
        return yaml.safe_dump(record, default_flow_style=False, sort_keys=False)

    def save_result(self, state: SimulationState, config: StrategyConfig, path: Path) -> Path:
        """Write the full JSON record to ``path``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.export_result_json(state, config), encoding="utf-8")

        logger.info(
            "Result saved",
            path=str(path),
            trades=len(state.trades_history),
        )
        return path

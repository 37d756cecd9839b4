"""
GridCalculator — Entry and exit ladder construction.

Both ladders are built once per run from a single reference price:
- entry prices span [low, high) in order_qty equal steps
- exit prices span (low, high] in the same steps, shifted up by one
Rung ``id`` pairs an entry level with the exit level one step above it.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, TYPE_CHECKING

from grid_replay.logging import get_logger

if TYPE_CHECKING:
    from grid_replay.config.schemas import StrategyConfig

logger = get_logger(__name__)


def round_half_up(value: Decimal | float | int | str, decimals: int) -> Decimal:
    """Round to ``decimals`` places, halves away from zero (1.005 -> 1.01)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    exponent = Decimal(1).scaleb(-decimals)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class GridLevel:
    """A single ladder rung. ``dollar_value`` is set on entry levels only."""

    id: int
    price: Decimal
    dollar_value: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "price": str(self.price)}
        if self.dollar_value is not None:
            data["dollar_value"] = str(self.dollar_value)
        return data


class GridCalculator:
    """Builds the fixed entry/exit ladders for a grid strategy run."""

    @staticmethod
    def _bounds(config: "StrategyConfig", reference_price: Decimal) -> tuple[Decimal, Decimal]:
        low = Decimal(str(reference_price))
        high = low * (Decimal("1") + config.grid_range)
        return low, high

    @staticmethod
    def build_entry_levels(
        config: "StrategyConfig",
        reference_price: Decimal,
    ) -> list[GridLevel]:
        """Entry ladder, lowest price first (rung ids count down from order_qty)."""
        low, high = GridCalculator._bounds(config, reference_price)
        qty = config.order_qty

        return [
            GridLevel(
                id=qty - i,
                price=round_half_up(low + (high - low) * i / qty, config.tick_round),
                dollar_value=config.order_dollar_value,
            )
            for i in range(qty)
        ]

    @staticmethod
    def build_exit_levels(
        config: "StrategyConfig",
        reference_price: Decimal,
    ) -> list[GridLevel]:
        """Exit ladder, one grid step above the entry ladder."""
        low, high = GridCalculator._bounds(config, reference_price)
        qty = config.order_qty

        return [
            GridLevel(
                id=qty - i,
                price=round_half_up(low + (high - low) * (i + 1) / qty, config.tick_round),
            )
            for i in range(qty)
        ]

    @staticmethod
    def build_grid(
        config: "StrategyConfig",
        reference_price: Decimal,
    ) -> tuple[list[GridLevel], list[GridLevel]]:
        """Calculate both ladders from config and reference price."""
        entry_levels = GridCalculator.build_entry_levels(config, reference_price)
        exit_levels = GridCalculator.build_exit_levels(config, reference_price)

        logger.info(
            "Grid calculated",
            reference_price=str(reference_price),
            levels=config.order_qty,
            entry_prices=[str(level.price) for level in entry_levels],
            exit_prices=[str(level.price) for level in exit_levels],
        )

        return entry_levels, exit_levels

    @staticmethod
    def step_size(entry_levels: list[GridLevel], exit_levels: list[GridLevel]) -> Decimal:
        """Price distance between paired entry/exit rungs (first pair)."""
        if not entry_levels or not exit_levels:
            return Decimal("0")
        exits = {level.id: level.price for level in exit_levels}
        first = entry_levels[0]
        return exits[first.id] - first.price

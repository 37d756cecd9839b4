"""
Grid replay data models — candles, positions, trade ledger, run state.

Defines all data structures consumed and produced by the simulator:
- Candle records (parsed from exchange klines or the candle cache)
- Open positions keyed by ladder rung id
- Append-only trade ledger entries
- Run statistics and the full simulation state
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, TYPE_CHECKING

from grid_replay.core.calculator import GridLevel

if TYPE_CHECKING:
    from grid_replay.config.schemas import StrategyConfig


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _dec(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


# =============================================================================
# Enums
# =============================================================================


class TradeType(str, Enum):
    """Ledger entry type."""

    BUY = "BUY"
    SELL = "SELL"
    TAKE_PROFIT = "TAKE_PROFIT"


# =============================================================================
# Candle
# =============================================================================


@dataclass(frozen=True)
class Candle:
    """Single OHLCV candle; timestamps are epoch milliseconds."""

    open_time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    close_time: int

    def __post_init__(self) -> None:
        for name in ("open", "high", "low", "close"):
            price = getattr(self, name)
            if not price.is_finite() or price <= 0:
                raise ValueError(f"Candle {name} must be a positive finite price, got {price}")
        if not self.volume.is_finite() or self.volume < 0:
            raise ValueError(f"Candle volume must be a non-negative finite amount, got {self.volume}")

    @classmethod
    def from_kline(cls, row: Any) -> "Candle":
        """
        Parse one exchange kline row.

        Rows are arrays: ``[openTime, open, high, low, close, volume,
        closeTime, ...]`` with prices as strings.

        Raises:
            ValueError: If the row is not a well-formed kline
        """
        if not isinstance(row, (list, tuple)) or len(row) < 7:
            raise ValueError(f"Kline row must be an array of at least 7 items: {row!r}")

        try:
            candle = cls(
                open_time=int(row[0]),
                open=_to_decimal(row[1]),
                high=_to_decimal(row[2]),
                low=_to_decimal(row[3]),
                close=_to_decimal(row[4]),
                volume=_to_decimal(row[5]),
                close_time=int(row[6]),
            )
        except (TypeError, ArithmeticError) as e:
            raise ValueError(f"Malformed kline row {row!r}: {e}") from e

        if candle.open_time >= candle.close_time:
            raise ValueError(
                f"Kline open time {candle.open_time} is not before close time {candle.close_time}"
            )
        return candle

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Candle":
        """Build from a cache record (camelCase keys, snake_case accepted)."""
        try:
            return cls(
                open_time=int(data.get("openTime", data.get("open_time"))),
                open=_to_decimal(data["open"]),
                high=_to_decimal(data["high"]),
                low=_to_decimal(data["low"]),
                close=_to_decimal(data["close"]),
                volume=_to_decimal(data["volume"]),
                close_time=int(data.get("closeTime", data.get("close_time"))),
            )
        except (KeyError, TypeError, ArithmeticError) as e:
            raise ValueError(f"Malformed candle record {data!r}: {e}") from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "openTime": self.open_time,
            "open": str(self.open),
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "volume": str(self.volume),
            "closeTime": self.close_time,
        }


# =============================================================================
# Position & Trade Record
# =============================================================================


@dataclass
class Position:
    """Filled buy held by one ladder rung."""

    entry_price: Decimal
    amount: Decimal  # quote notional
    opened_at: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_price": str(self.entry_price),
            "amount": str(self.amount),
            "opened_at": self.opened_at,
        }


@dataclass
class TradeRecord:
    """Single ledger entry."""

    time: int
    type: TradeType
    price: Decimal
    amount: Decimal
    quantity: Decimal
    fee: Decimal
    balance_after: Decimal
    level_id: int
    profit: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "type": self.type.value,
            "level_id": self.level_id,
            "price": str(self.price),
            "amount": str(self.amount),
            "quantity": str(self.quantity),
            "profit": _dec(self.profit),
            "fee": str(self.fee),
            "balance_after": str(self.balance_after),
        }


# =============================================================================
# Run State
# =============================================================================


@dataclass
class SimulationStats:
    """Trade counters; total_trades counts BUY fills."""

    total_trades: int = 0
    profitable_trades: int = 0
    unprofitable_trades: int = 0
    total_fees: Decimal = Decimal("0")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_trades": self.total_trades,
            "profitable_trades": self.profitable_trades,
            "unprofitable_trades": self.unprofitable_trades,
            "total_fees": str(self.total_fees),
        }


@dataclass
class SimulationState:
    """Mutable accumulator owned by one simulation run."""

    balance: Decimal
    available_balance: Decimal
    total_profit: Decimal = Decimal("0")
    open_positions: dict[int, Position] = field(default_factory=dict)
    trades_history: list[TradeRecord] = field(default_factory=list)
    stats: SimulationStats = field(default_factory=SimulationStats)
    entry_levels: list[GridLevel] = field(default_factory=list)
    exit_levels: list[GridLevel] = field(default_factory=list)
    candles_processed: int = 0

    @classmethod
    def initial(cls, config: "StrategyConfig") -> "SimulationState":
        return cls(
            balance=config.initial_amount,
            available_balance=config.initial_amount,
        )

    def sorted_positions(self) -> list[tuple[int, Position]]:
        """Open positions in ascending rung id."""
        return sorted(self.open_positions.items())

    def to_dict(self, include_trades: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "balance": str(self.balance),
            "available_balance": str(self.available_balance),
            "total_profit": str(self.total_profit),
            "candles_processed": self.candles_processed,
            "stats": self.stats.to_dict(),
            "open_positions": {
                str(level_id): position.to_dict()
                for level_id, position in self.sorted_positions()
            },
            "entry_levels": [level.to_dict() for level in self.entry_levels],
            "exit_levels": [level.to_dict() for level in self.exit_levels],
        }
        if include_trades:
            data["trades_history"] = [trade.to_dict() for trade in self.trades_history]
        return data

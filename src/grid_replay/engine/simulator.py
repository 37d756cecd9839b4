"""
GridStrategySimulator — Core grid replay engine.

Replays candles against fixed entry/exit ladders. Each candle runs three
passes in a fixed order, which decides what can fill on the same candle:

1. take-profit over open positions (ascending rung id)
2. entry fills over the entry ladder (construction order)
3. exit fills over the exit ladder (construction order)

All decisions use the candle close. Money is kept in Decimal throughout.
"""

import time
from collections.abc import Iterable
from decimal import Decimal
from itertools import chain

from grid_replay.config.schemas import StrategyConfig
from grid_replay.core.calculator import GridCalculator, round_half_up
from grid_replay.engine.models import (
    Candle,
    Position,
    SimulationState,
    TradeRecord,
    TradeType,
)
from grid_replay.logging import get_logger

logger = get_logger(__name__)

PROGRESS_LOG_INTERVAL = 1000


class GridStrategySimulator:
    """
    Runs the grid strategy over an ordered candle sequence.

    Usage:
        config = StrategyConfig(symbol="BTCUSDT", order_qty=10)
        state = GridStrategySimulator(config).run(candles)
    """

    def __init__(self, config: StrategyConfig) -> None:
        self.config = config

    def run(
        self,
        candles: Iterable[Candle],
        reference_price: Decimal | None = None,
    ) -> SimulationState:
        """
        Replay ``candles`` once, in order, and return the final state.

        The ladders are built from ``reference_price`` or, when omitted, from
        the first candle's close. Any iterable works, so candles can be
        streamed from disk.
        """
        start_time = time.perf_counter()
        state = SimulationState.initial(self.config)

        candle_iter = iter(candles)
        first = next(candle_iter, None)
        if first is None:
            logger.warning("No candles to replay", symbol=self.config.symbol)
            return state

        if reference_price is None:
            reference_price = first.close

        state.entry_levels, state.exit_levels = GridCalculator.build_grid(
            self.config, reference_price
        )

        logger.info(
            "Starting grid replay",
            symbol=self.config.symbol,
            interval=self.config.interval,
            reference_price=str(reference_price),
            order_qty=self.config.order_qty,
            take_profit_percent=(
                str(self.config.take_profit_percent)
                if self.config.take_profit_enabled
                else None
            ),
        )

        for index, candle in enumerate(chain((first,), candle_iter)):
            if self.config.take_profit_enabled:
                self._check_take_profit(state, candle)
            self._fill_entries(state, candle)
            self._fill_exits(state, candle)
            state.candles_processed += 1

            if index % PROGRESS_LOG_INTERVAL == 0:
                logger.debug(
                    "Replay progress",
                    candles=index,
                    available_balance=str(round_half_up(state.available_balance, 2)),
                    total_profit=str(round_half_up(state.total_profit, 2)),
                )

        state.balance = state.available_balance + state.total_profit

        logger.info(
            "Grid replay completed",
            symbol=self.config.symbol,
            candles=state.candles_processed,
            balance=str(round_half_up(state.balance, 2)),
            total_profit=str(round_half_up(state.total_profit, 2)),
            trades=len(state.trades_history),
            open_positions=len(state.open_positions),
            duration_s=round(time.perf_counter() - start_time, 2),
        )

        return state

    # =========================================================================
    # Per-candle passes
    # =========================================================================

    def _check_take_profit(self, state: SimulationState, candle: Candle) -> None:
        take_profit = self.config.take_profit_percent
        if take_profit is None:
            return
        multiplier = Decimal("1") + take_profit

        for level_id, position in state.sorted_positions():
            if candle.close >= position.entry_price * multiplier:
                self._close_position(
                    state,
                    level_id,
                    candle,
                    trade_type=TradeType.TAKE_PROFIT,
                    trade_price=candle.close,
                )
                state.stats.profitable_trades += 1

    def _fill_entries(self, state: SimulationState, candle: Candle) -> None:
        comm = self.config.comm

        for level in state.entry_levels:
            if level.id in state.open_positions or candle.close > level.price:
                continue

            dollar_value = level.dollar_value or self.config.order_dollar_value
            fee = dollar_value * comm
            total_cost = dollar_value + fee
            if state.available_balance < total_cost:
                continue

            state.available_balance -= total_cost
            state.open_positions[level.id] = Position(
                entry_price=level.price,
                amount=dollar_value,
                opened_at=candle.open_time,
            )
            state.stats.total_trades += 1
            state.stats.total_fees += fee

            state.trades_history.append(TradeRecord(
                time=candle.open_time,
                type=TradeType.BUY,
                price=level.price,
                amount=dollar_value,
                quantity=self._quantity(dollar_value, level.price),
                fee=fee,
                balance_after=state.available_balance,
                level_id=level.id,
            ))

    def _fill_exits(self, state: SimulationState, candle: Candle) -> None:
        for level in state.exit_levels:
            if level.id not in state.open_positions or candle.close < level.price:
                continue

            profit = self._close_position(
                state,
                level.id,
                candle,
                trade_type=TradeType.SELL,
                trade_price=level.price,
            )
            if profit > 0:
                state.stats.profitable_trades += 1
            else:
                state.stats.unprofitable_trades += 1

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _close_position(
        self,
        state: SimulationState,
        level_id: int,
        candle: Candle,
        trade_type: TradeType,
        trade_price: Decimal,
    ) -> Decimal:
        """Release a rung's position at the candle close; returns gross profit."""
        position = state.open_positions.pop(level_id)

        fee = position.amount * self.config.comm
        profit = position.amount * (candle.close - position.entry_price) / position.entry_price

        state.available_balance += position.amount + profit - fee
        state.total_profit += profit - fee
        state.stats.total_fees += fee

        state.trades_history.append(TradeRecord(
            time=candle.open_time,
            type=trade_type,
            price=trade_price,
            amount=position.amount,
            quantity=self._quantity(position.amount, position.entry_price),
            fee=fee,
            balance_after=state.available_balance,
            level_id=level_id,
            profit=profit,
        ))

        return profit

    def _quantity(self, amount: Decimal, price: Decimal) -> Decimal:
        if price == 0:
            return Decimal("0")
        return round_half_up(amount / price, self.config.qty_round)


def run_grid_strategy(
    candles: Iterable[Candle],
    config: StrategyConfig,
    reference_price: Decimal | None = None,
) -> SimulationState:
    """Run one grid replay with a fresh simulator."""
    return GridStrategySimulator(config).run(candles, reference_price=reference_price)

"""Shared test fixtures and helpers for grid replay tests."""

from decimal import Decimal

import numpy as np
import pytest

from grid_replay.config.schemas import StrategyConfig
from grid_replay.engine.models import Candle

MINUTE_MS = 60_000
START_MS = 1_731_628_800_000  # 2024-11-15T00:00:00Z


def make_candle(close: str | float, index: int = 0) -> Candle:
    """One-minute candle whose OHLC all equal ``close``."""
    price = Decimal(str(close))
    open_time = START_MS + index * MINUTE_MS
    return Candle(
        open_time=open_time,
        open=price,
        high=price,
        low=price,
        close=price,
        volume=Decimal("1"),
        close_time=open_time + MINUTE_MS - 1,
    )


def make_series(closes: list[str | float]) -> list[Candle]:
    return [make_candle(close, i) for i, close in enumerate(closes)]


def make_candles(
    n: int = 100,
    start_price: float = 45000.0,
    volatility: float = 0.01,
    seed: int = 42,
) -> list[Candle]:
    """Generate synthetic one-minute candles with a random-walk close."""
    rng = np.random.RandomState(seed)
    prices = [start_price]
    for _ in range(n - 1):
        change = rng.normal(0, volatility)
        prices.append(prices[-1] * (1 + change))

    candles = []
    for i, close in enumerate(prices):
        high = close * (1 + abs(rng.normal(0, volatility / 2)))
        low = close * (1 - abs(rng.normal(0, volatility / 2)))
        open_price = prices[i - 1] if i > 0 else close
        open_time = START_MS + i * MINUTE_MS
        candles.append(Candle(
            open_time=open_time,
            open=Decimal(str(round(open_price, 2))),
            high=Decimal(str(round(max(high, open_price, close), 2))),
            low=Decimal(str(round(min(low, open_price, close), 2))),
            close=Decimal(str(round(close, 2))),
            volume=Decimal(str(round(float(rng.uniform(100, 1000)), 4))),
            close_time=open_time + MINUTE_MS - 1,
        ))

    return candles


def make_ranging_candles(
    n: int = 200,
    center: float = 45000.0,
    spread: float = 800.0,
    seed: int = 42,
) -> list[Candle]:
    """Generate candles oscillating within a band (ideal for a grid)."""
    rng = np.random.RandomState(seed)
    closes = []
    prev_close = center
    for _ in range(n):
        target = center + rng.uniform(-spread, spread)
        prev_close = prev_close + (target - prev_close) * 0.3
        closes.append(round(prev_close, 2))
    return make_series(closes)


def scenario_config(**overrides) -> StrategyConfig:
    """Two-rung, zero-commission config used by the worked examples."""
    values = {
        "grid_range": Decimal("0.05"),
        "order_qty": 2,
        "order_dollar_value": Decimal("10"),
        "initial_amount": Decimal("100"),
        "tick_round": 2,
        "comm": Decimal("0"),
        "take_profit_percent": None,
    }
    values.update(overrides)
    return StrategyConfig(**values)


@pytest.fixture
def candles_500():
    return make_candles(n=500)


@pytest.fixture
def ranging_candles_200():
    return make_ranging_candles(n=200)


@pytest.fixture
def default_config():
    return StrategyConfig()

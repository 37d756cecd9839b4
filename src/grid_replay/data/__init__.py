"""Candle acquisition — Binance kline client and paginator."""

from grid_replay.data.binance import (
    BinanceKlineClient,
    CandlePaginator,
    CandleSource,
    RetryPolicy,
    parse_date_to_ms,
    parse_klines,
)

__all__ = [
    "BinanceKlineClient",
    "CandlePaginator",
    "CandleSource",
    "RetryPolicy",
    "parse_date_to_ms",
    "parse_klines",
]

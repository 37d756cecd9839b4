"""
Command line entry point for grid replay.

Usage:
    grid-replay download --symbol BTCUSDT --interval 1m --start 2024-11-15 --end 2024-12-30
    grid-replay run --config strategy.yaml --candles data/candles/BTCUSDT_1m_2024-11-15_2024-12-30.json
    grid-replay run --start 2024-11-15 --end 2024-12-30 --result results/run.json
"""

import argparse
import asyncio
import sys
from collections.abc import Callable
from pathlib import Path

from grid_replay.config import StrategyConfig, load_strategy_config, strategy_config_from_dict
from grid_replay.data.binance import (
    BinanceKlineClient,
    CandlePaginator,
    RetryPolicy,
    parse_date_to_ms,
)
from grid_replay.engine.models import Candle
from grid_replay.engine.reporter import GridReplayReporter
from grid_replay.engine.simulator import GridStrategySimulator
from grid_replay.exceptions import ConfigurationError, GridReplayError
from grid_replay.logging import get_logger, log_context, setup_logging
from grid_replay.persistence.candle_store import CandleStore

logger = get_logger(__name__)


async def download_candles(
    symbol: str,
    interval: str,
    start: str,
    end: str,
    retry_policy: RetryPolicy | None = None,
    client_factory: Callable[[], BinanceKlineClient] = BinanceKlineClient,
) -> list[Candle]:
    """Fetch every candle between two ISO dates."""
    try:
        start_time = parse_date_to_ms(start)
        end_time = parse_date_to_ms(end)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    if start_time >= end_time:
        raise ConfigurationError(f"Start {start} must be before end {end}")

    logger.info("Downloading candles", symbol=symbol, interval=interval, start=start, end=end)

    async with client_factory() as client:
        paginator = CandlePaginator(client, retry_policy=retry_policy)
        return await paginator.fetch_all(symbol, interval, start_time, end_time)


def _retry_policy(args: argparse.Namespace) -> RetryPolicy:
    max_attempts = args.max_attempts if args.max_attempts > 0 else None
    return RetryPolicy(max_attempts=max_attempts, delay_seconds=args.retry_delay)


def _load_config(args: argparse.Namespace) -> StrategyConfig:
    overrides = {"symbol": args.symbol, "interval": args.interval}
    if args.config:
        return load_strategy_config(Path(args.config), **overrides)
    return strategy_config_from_dict({}, **overrides)


def cmd_download(args: argparse.Namespace) -> int:
    config = _load_config(args)
    with log_context(symbol=config.symbol, interval=config.interval):
        return _download(args, config)


def _download(args: argparse.Namespace, config: StrategyConfig) -> int:
    store = CandleStore(args.data_dir)
    output = Path(args.output) if args.output else store.path_for(
        config.symbol, config.interval, args.start, args.end, fmt=args.format
    )

    candles = asyncio.run(download_candles(
        config.symbol, config.interval, args.start, args.end, retry_policy=_retry_policy(args),
    ))
    store.save(candles, output)
    print(f"Saved {len(candles)} candles to {output}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    config = _load_config(args)
    with log_context(symbol=config.symbol, interval=config.interval):
        return _run(args, config)


def _run(args: argparse.Namespace, config: StrategyConfig) -> int:
    store = CandleStore(args.data_dir)

    if args.candles:
        candles = store.load(Path(args.candles))
    elif args.start and args.end:
        candles = asyncio.run(download_candles(
            config.symbol, config.interval, args.start, args.end, retry_policy=_retry_policy(args),
        ))
        if args.save_candles:
            store.save(candles, Path(args.save_candles))
    else:
        raise ConfigurationError("Provide --candles or both --start and --end")

    state = GridStrategySimulator(config).run(candles)

    reporter = GridReplayReporter()
    for line in reporter.format_summary(state, config):
        print(line)

    if args.result:
        reporter.save_result(state, config, Path(args.result))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grid-replay",
        description="Backtest a static grid strategy on exchange candle history",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON")
    parser.add_argument("--log-dir", help="Also write rotating log files to this directory")

    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Strategy YAML file")
    common.add_argument("--symbol", help="Symbol override (e.g. BTCUSDT)")
    common.add_argument("--interval", help="Kline interval override (e.g. 1m)")
    common.add_argument("--data-dir", default="data/candles", help="Candle cache directory")
    common.add_argument(
        "--max-attempts",
        type=int,
        default=5,
        help="Attempts per candle page, 0 retries forever (default: 5)",
    )
    common.add_argument(
        "--retry-delay",
        type=float,
        default=5.0,
        help="Seconds between attempts (default: 5)",
    )

    download = subparsers.add_parser("download", parents=[common], help="Download and cache candles")
    download.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    download.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    download.add_argument("--output", help="Output file (.json or .csv)")
    download.add_argument("--format", choices=["json", "csv"], default="json")
    download.set_defaults(handler=cmd_download)

    run = subparsers.add_parser("run", parents=[common], help="Run the grid strategy")
    run.add_argument("--candles", help="Cached candle file (.json or .csv)")
    run.add_argument("--start", help="Start date when fetching live (YYYY-MM-DD)")
    run.add_argument("--end", help="End date when fetching live (YYYY-MM-DD)")
    run.add_argument("--save-candles", help="Also cache fetched candles to this file")
    run.add_argument("--result", help="Write the full JSON result to this file")
    run.set_defaults(handler=cmd_run)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    setup_logging(
        log_level=args.log_level,
        log_dir=Path(args.log_dir) if args.log_dir else None,
        log_to_file=bool(args.log_dir),
        json_logs=args.json_logs,
    )

    with log_context(command=args.command):
        try:
            return args.handler(args)
        except GridReplayError as e:
            logger.error("Grid replay failed", error=str(e), error_type=type(e).__name__)
            return 1


if __name__ == "__main__":
    sys.exit(main())

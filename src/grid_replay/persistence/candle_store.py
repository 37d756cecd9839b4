"""
CandleStore — Candle cache files, loadable in place of live fetching.

Formats (chosen by file suffix):
- ``.json``: array of candle records, the download tool's native output
- ``.csv``: timestamp/datetime/OHLCV/close_time columns via pandas
"""

import json
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any

import pandas as pd

from grid_replay.engine.models import Candle
from grid_replay.exceptions import ConfigurationError, MalformedPayloadError
from grid_replay.logging import get_logger

logger = get_logger(__name__)

CSV_COLUMNS = ["timestamp", "datetime", "open", "high", "low", "close", "volume", "close_time"]
SUPPORTED_FORMATS = ("json", "csv")


class CandleStore:
    """Reads and writes candle cache files under a base directory."""

    def __init__(self, directory: str | Path = "data/candles") -> None:
        self.directory = Path(directory)

    def path_for(
        self,
        symbol: str,
        interval: str,
        start: str,
        end: str,
        fmt: str = "json",
    ) -> Path:
        """Cache file path for one download (e.g. BTCUSDT_1m_2024-11-15_2024-12-30.json)."""
        if fmt not in SUPPORTED_FORMATS:
            raise ConfigurationError(f"Unsupported candle format: {fmt}")
        symbol_safe = symbol.replace("/", "_")
        return self.directory / f"{symbol_safe}_{interval}_{start}_{end}.{fmt}"

    def save(self, candles: Iterable[Candle], path: Path) -> Path:
        """Write candles to ``path``; format follows the suffix."""
        fmt = self._format_of(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        candles = list(candles)

        if fmt == "json":
            with open(path, "w", encoding="utf-8") as f:
                json.dump([c.to_dict() for c in candles], f, indent=2)
        else:
            self._to_frame(candles).to_csv(path, index=False)

        logger.info("Candles saved", path=str(path), count=len(candles))
        return path

    def load(self, path: Path) -> list[Candle]:
        """
        Load all candles from ``path``.

        Raises:
            MalformedPayloadError: If the file is missing or unreadable
        """
        fmt = self._format_of(path)
        if not path.exists():
            raise MalformedPayloadError(f"Candle file not found: {path}")

        candles = list(self.iter_json(path)) if fmt == "json" else self._load_csv(path)

        logger.info("Candles loaded", path=str(path), count=len(candles))
        return candles

    def iter_json(self, path: Path) -> Iterator[Candle]:
        """Yield candles from a JSON cache file in stored order."""
        try:
            with open(path, encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise MalformedPayloadError(f"Cannot read candle file {path}: {e}") from e

        if not isinstance(records, list):
            raise MalformedPayloadError(f"Candle file must hold an array: {path}")

        for record in records:
            yield self._record_to_candle(record)

    # =========================================================================
    # Private Helpers
    # =========================================================================

    def _load_csv(self, path: Path) -> list[Candle]:
        try:
            frame = pd.read_csv(path, dtype=str)
        except (OSError, ValueError) as e:
            raise MalformedPayloadError(f"Cannot read candle file {path}: {e}") from e

        missing = set(CSV_COLUMNS) - {"datetime"} - set(frame.columns)
        if missing:
            raise MalformedPayloadError(f"Candle file {path} is missing columns: {sorted(missing)}")

        return [
            self._record_to_candle({
                "openTime": row["timestamp"],
                "open": row["open"],
                "high": row["high"],
                "low": row["low"],
                "close": row["close"],
                "volume": row["volume"],
                "closeTime": row["close_time"],
            })
            for row in frame.to_dict(orient="records")
        ]

    @staticmethod
    def _to_frame(candles: list[Candle]) -> pd.DataFrame:
        rows = [
            {
                "timestamp": c.open_time,
                "datetime": pd.Timestamp(c.open_time, unit="ms", tz="UTC").isoformat(),
                "open": str(c.open),
                "high": str(c.high),
                "low": str(c.low),
                "close": str(c.close),
                "volume": str(c.volume),
                "close_time": c.close_time,
            }
            for c in candles
        ]
        return pd.DataFrame(rows, columns=CSV_COLUMNS)

    @staticmethod
    def _record_to_candle(record: Any) -> Candle:
        if not isinstance(record, dict):
            raise MalformedPayloadError(f"Candle record must be an object: {record!r}")
        try:
            return Candle.from_dict(record)
        except ValueError as e:
            raise MalformedPayloadError(str(e)) from e

    @staticmethod
    def _format_of(path: Path) -> str:
        fmt = path.suffix.lstrip(".").lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ConfigurationError(f"Unsupported candle file type: {path}")
        return fmt

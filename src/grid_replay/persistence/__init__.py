"""Persistence layer — candle cache files."""

from grid_replay.persistence.candle_store import CandleStore

__all__ = ["CandleStore"]

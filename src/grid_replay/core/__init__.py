"""Core grid components — ladder calculator and rounding."""

from grid_replay.core.calculator import GridCalculator, GridLevel, round_half_up

__all__ = [
    "GridCalculator",
    "GridLevel",
    "round_half_up",
]

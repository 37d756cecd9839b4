"""Structured logging for grid replay."""

from grid_replay.logging.logger import get_logger, setup_logging, log_context

__all__ = ["get_logger", "setup_logging", "log_context"]

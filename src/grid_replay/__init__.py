"""
Grid Replay — Historical backtester for a static grid trading strategy.

Provides:
- Binance kline download with pagination and bounded retry
- JSON/CSV candle cache
- Fixed entry/exit ladder construction
- Candle-by-candle grid replay with take-profit, fees and a trade ledger
- Summary reporting and JSON/YAML result export
"""

__version__ = "1.0.0"

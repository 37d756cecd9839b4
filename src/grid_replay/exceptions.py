"""Custom exceptions for grid replay runs"""


class GridReplayError(Exception):
    """Base exception for all grid replay errors"""

    pass


class ConfigurationError(GridReplayError, ValueError):
    """Raised when a strategy configuration is rejected before a run"""

    pass


class DataSourceError(GridReplayError):
    """Raised when candle retrieval fails"""

    pass


class DataSourceNetworkError(DataSourceError):
    """Raised when network communication with the exchange fails"""

    pass


class DataSourceHTTPError(DataSourceError):
    """Raised when the exchange answers with a non-2xx status"""

    def __init__(self, status: int, reason: str = "") -> None:
        self.status = status
        self.reason = reason
        super().__init__(f"Exchange API error: {status} {reason}".rstrip())


class DataSourceRateLimitError(DataSourceHTTPError):
    """Raised when the exchange rate limit is exceeded (HTTP 429/418)"""

    pass


class MalformedPayloadError(DataSourceError):
    """Raised when a candle payload is not an array of kline rows"""

    pass

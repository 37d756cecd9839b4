"""
Binance kline client and candle paginator.

Fetches OHLCV history from the public ``/api/v3/klines`` endpoint in
batches of up to 1000 candles. The paginator walks a date range page by
page, resuming from the last candle's close time, and retries failed pages
with a fixed delay up to a bounded number of attempts.
"""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_never,
    wait_fixed,
)

from grid_replay.engine.models import Candle
from grid_replay.exceptions import (
    DataSourceError,
    DataSourceHTTPError,
    DataSourceNetworkError,
    DataSourceRateLimitError,
    MalformedPayloadError,
)
from grid_replay.logging import get_logger

logger = get_logger(__name__)

BINANCE_BASE_URL = "https://api.binance.com"
KLINES_ENDPOINT = "/api/v3/klines"
MAX_KLINES_PER_REQUEST = 1000


class CandleSource(Protocol):
    """Anything that can return one ascending page of candles."""

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        start_time: int,
        end_time: int,
        limit: int = MAX_KLINES_PER_REQUEST,
    ) -> list[Candle]: ...


def parse_klines(payload: Any) -> list[Candle]:
    """
    Convert a klines payload into candles.

    Raises:
        MalformedPayloadError: If the payload is not an array of kline rows
    """
    if not isinstance(payload, list):
        raise MalformedPayloadError(
            f"Unexpected klines payload, expected an array: {type(payload).__name__}"
        )

    try:
        return [Candle.from_kline(row) for row in payload]
    except ValueError as e:
        raise MalformedPayloadError(str(e)) from e


def parse_date_to_ms(value: str) -> int:
    """Epoch milliseconds for an ISO date/datetime; naive values are UTC."""
    try:
        dt = datetime.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid date: {value!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


# =============================================================================
# HTTP client
# =============================================================================


class BinanceKlineClient:
    """
    Async client for the Binance public klines endpoint.

    Usage:
        async with BinanceKlineClient() as client:
            candles = await client.fetch_candles("BTCUSDT", "1m", start, end)
    """

    def __init__(
        self,
        base_url: str = BINANCE_BASE_URL,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

        self._request_count = 0
        self._error_count = 0

    async def __aenter__(self) -> "BinanceKlineClient":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Open the HTTP session if none was supplied."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug(
                "Kline client closed",
                total_requests=self._request_count,
                total_errors=self._error_count,
            )
        self._session = None

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        start_time: int,
        end_time: int,
        limit: int = MAX_KLINES_PER_REQUEST,
    ) -> list[Candle]:
        """
        Fetch one page of candles, ascending by open time.

        Raises:
            DataSourceHTTPError: On a non-2xx response
            DataSourceNetworkError: On connection failures and timeouts
            MalformedPayloadError: If the body is not an array of klines
        """
        if self._session is None:
            raise DataSourceError("Kline client not initialized")

        self._request_count += 1
        url = f"{self.base_url}{KLINES_ENDPOINT}"
        params = {
            "symbol": symbol,
            "interval": interval,
            "startTime": start_time,
            "endTime": end_time,
            "limit": min(limit, MAX_KLINES_PER_REQUEST),
        }

        logger.debug("Kline request", url=url, start_time=start_time, end_time=end_time)

        try:
            async with self._session.get(url, params=params) as response:
                if not 200 <= response.status < 300:
                    self._error_count += 1
                    raise self._map_status(response.status, response.reason or "")
                try:
                    payload = await response.json(content_type=None)
                except ValueError as e:
                    self._error_count += 1
                    raise MalformedPayloadError(f"Klines response is not JSON: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._error_count += 1
            logger.error("Network error", url=url, error=str(e))
            raise DataSourceNetworkError(f"Network error: {e}") from e

        return parse_klines(payload)

    @staticmethod
    def _map_status(status: int, reason: str) -> DataSourceHTTPError:
        # 418 is Binance's IP ban after ignored 429s
        if status in (418, 429):
            return DataSourceRateLimitError(status, reason)
        return DataSourceHTTPError(status, reason)


# =============================================================================
# Pagination with retry
# =============================================================================


def _is_transient(error: BaseException) -> bool:
    """Whether a failed page fetch is worth another attempt."""
    if isinstance(error, DataSourceRateLimitError):
        return True
    if isinstance(error, DataSourceHTTPError):
        # Other 4xx responses (bad symbol, bad interval) will not change on retry
        return not 400 <= error.status < 500
    return isinstance(error, DataSourceError)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Candle page fetch failed, retrying",
        attempt=retry_state.attempt_number,
        error=str(error),
        delay_s=retry_state.next_action.sleep if retry_state.next_action else None,
    )


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry for one page; ``max_attempts=None`` retries forever."""

    max_attempts: int | None = 5
    delay_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be non-negative")

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_never if self.max_attempts is None else stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.delay_seconds),
            before_sleep=_log_retry,
            reraise=True,
        )


class CandlePaginator:
    """Walks a time range through a CandleSource, one page at a time."""

    def __init__(
        self,
        source: CandleSource,
        retry_policy: RetryPolicy | None = None,
        page_limit: int = MAX_KLINES_PER_REQUEST,
    ) -> None:
        self.source = source
        self.retry_policy = retry_policy or RetryPolicy()
        self.page_limit = page_limit

    async def iter_pages(
        self,
        symbol: str,
        interval: str,
        start_time: int,
        end_time: int,
    ) -> AsyncIterator[list[Candle]]:
        """
        Yield non-empty pages in order until the range is exhausted.

        A page shorter than the limit ends the walk; otherwise the next page
        starts one millisecond after the last candle's close time.
        """
        while start_time < end_time:
            candles = await self._fetch_page(symbol, interval, start_time, end_time)
            if not candles:
                break

            yield candles

            if len(candles) < self.page_limit:
                break

            start_time = candles[-1].close_time + 1

    async def fetch_all(
        self,
        symbol: str,
        interval: str,
        start_time: int,
        end_time: int,
    ) -> list[Candle]:
        """Fetch the whole range into one list."""
        all_candles: list[Candle] = []

        async for page in self.iter_pages(symbol, interval, start_time, end_time):
            all_candles.extend(page)
            logger.info(
                "Candles fetched",
                batch=len(page),
                total=len(all_candles),
            )

        logger.info(
            "Candle download complete",
            symbol=symbol,
            interval=interval,
            total=len(all_candles),
        )
        return all_candles

    async def _fetch_page(
        self,
        symbol: str,
        interval: str,
        start_time: int,
        end_time: int,
    ) -> list[Candle]:
        candles: list[Candle] = []
        async for attempt in self.retry_policy.retrying():
            with attempt:
                candles = await self.source.fetch_candles(
                    symbol, interval, start_time, end_time, limit=self.page_limit
                )
        return candles

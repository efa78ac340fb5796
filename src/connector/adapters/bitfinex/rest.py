"""
Bitfinex public REST client.

Three read-only operations for historical backfill. Each request attempt is
classified into an Outcome, and a composed RetryPolicy decides whether to
try again: transport failures are retried with a fixed delay, HTTP error
statuses and malformed payloads surface immediately.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from src.connector.adapters.bitfinex.data import (
    CandleRow,
    TickerRow,
    TradeRow,
    candle_key,
    to_millis,
    trading_symbol,
)
from src.connector.adapters.bitfinex.timeframes import timeframe_for_period
from src.connector.config import RestConfig
from src.connector.connection.retry import Outcome, RetryPolicy, Sleep
from src.connector.enums import ErrorKind
from src.connector.exceptions import NetworkError, ProtocolError
from src.connector.model import Candle, Ticker, Trade

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)
D = TypeVar("D")


class BitfinexRestClient:
    """
    Async client for the public Bitfinex REST endpoints.

    The client is stateless apart from its HTTP connection pool and is safe
    to share between tasks.
    """

    def __init__(
        self,
        config: RestConfig | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the REST client.

        Args:
            config: REST settings; defaults are read from the environment
            client: Pre-built HTTP client, e.g. one with a mock transport
            sleep: Awaitable sleep used between retries

        """
        self.config = config or RestConfig()
        self._client = client or httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.request_timeout,
        )
        self._retry = RetryPolicy(
            max_attempts=self.config.max_retry_attempts,
            delay=self.config.retry_delay,
            sleep=sleep,
        )

    async def aclose(self) -> None:
        """Release the HTTP connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "BitfinexRestClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get_trades(self, pair: str, max_count: int) -> list[Trade]:
        """
        Get recent trades for a pair.

        Args:
            pair: Pair without prefix (e.g., "BTCUSD")
            max_count: Passed to the exchange as ``limit``

        Returns:
            Trades in exchange order; empty for a null or empty payload

        Raises:
            NetworkError: Transport failures outlived the retry budget
            ProtocolError: Error status or malformed payload

        """
        path = f"/trades/{trading_symbol(pair)}/hist"
        body = await self._get(path, {"limit": max_count})
        return self._parse_rows(body, TradeRow, lambda row: row.to_domain(pair))

    async def get_candle_series(
        self,
        pair: str,
        period_seconds: int,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[Candle]:
        """
        Get historical candles for a pair.

        Raises:
            ConfigurationError: The period has no exchange timeframe; no
                request is made
            NetworkError: Transport failures outlived the retry budget
            ProtocolError: Error status or malformed payload

        """
        timeframe = timeframe_for_period(period_seconds)

        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if start is not None:
            params["start"] = to_millis(start)
        if end is not None:
            params["end"] = to_millis(end)

        path = f"/candles/{candle_key(pair, timeframe)}/hist"
        body = await self._get(path, params)
        return self._parse_rows(body, CandleRow, lambda row: row.to_domain(pair))

    async def get_ticker(self, pair: str) -> Ticker:
        """
        Get the current ticker for a pair.

        Raises:
            ProtocolError: The payload is absent or has too few fields

        """
        body = await self._get(f"/ticker/{trading_symbol(pair)}")

        # Some deployments wrap the row in an outer array
        if isinstance(body, list) and body and isinstance(body[0], list):
            body = body[0]
        if not body:
            raise ProtocolError(f"Empty ticker response for {pair}")

        try:
            return TickerRow.model_validate(body).to_domain()
        except ValidationError as e:
            raise ProtocolError(f"Malformed ticker for {pair}: {e}") from e

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a path with retry, returning the decoded JSON body."""

        async def attempt() -> Outcome[Any]:
            return await self._attempt(path, params or {})

        return await self._retry.run(attempt)

    async def _attempt(self, path: str, params: dict[str, Any]) -> Outcome[Any]:
        """Perform one request and classify the result."""
        logger.debug(f"GET {path} {params}")
        try:
            response = await self._client.get(path, params=params)
        except httpx.TransportError as e:
            return Outcome.failure(
                ErrorKind.NETWORK, NetworkError(f"GET {path} failed: {e!r}")
            )

        if response.is_error:
            return Outcome.failure(
                ErrorKind.PROTOCOL,
                ProtocolError(
                    f"GET {path} returned HTTP {response.status_code}",
                    status_code=response.status_code,
                ),
            )

        if not response.content.strip():
            return Outcome.success(None)
        try:
            return Outcome.success(
                json.loads(response.content, parse_float=Decimal)
            )
        except json.JSONDecodeError as e:
            return Outcome.failure(
                ErrorKind.PROTOCOL,
                ProtocolError(
                    f"GET {path} returned invalid JSON: {e}",
                    status_code=response.status_code,
                ),
            )

    @staticmethod
    def _parse_rows(
        body: Any, row_model: type[R], to_domain: Callable[[R], D]
    ) -> list[D]:
        """Validate every row of an array payload; null means no rows."""
        if body is None:
            return []
        if not isinstance(body, list):
            raise ProtocolError(f"Expected an array, got {type(body).__name__}")

        try:
            return [to_domain(row_model.model_validate(row)) for row in body]
        except ValidationError as e:
            raise ProtocolError(
                f"Malformed {row_model.__name__} in response: {e}"
            ) from e

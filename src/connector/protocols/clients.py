"""
Capability protocols for exchange clients.

These protocols describe what a market data client can do, independent of
which exchange implements it. Concrete clients satisfy them structurally,
without inheriting from them.

Key design principles:
- Capabilities, not base classes: shared retry and reconnect behavior is
  composed into clients as helpers
- Async everywhere: every operation that may touch the network is awaitable
- Handlers are synchronous callables invoked in registration order
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol, runtime_checkable

from src.connector.model import Candle, Subscription, Ticker, Trade
from src.connector.service.event_bus import SubscriberHandle

TradeHandler = Callable[[Trade], None]
CandleHandler = Callable[[Candle], None]


@runtime_checkable
class RestClientProtocol(Protocol):
    """
    Protocol for historical market data over REST.

    Semantic Role: Backfill source
    Relationships:
    - Independent of: StreamClientProtocol (no shared state)
    - Produces: Trade, Candle and Ticker domain models
    """

    async def get_trades(self, pair: str, max_count: int) -> list[Trade]:
        """
        Get recent trades for a pair.

        Args:
            pair: Pair without prefix (e.g., "BTCUSD")
            max_count: Maximum number of trades to return

        Returns:
            Trades in the order the exchange returned them

        """
        ...

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

        Args:
            pair: Pair without prefix
            period_seconds: Candle period, must map to an exchange timeframe
            start: Optional inclusive lower time bound
            end: Optional inclusive upper time bound
            limit: Optional bound on result count

        Returns:
            Candles in the order the exchange returned them

        """
        ...

    async def get_ticker(self, pair: str) -> Ticker:
        """Get the current ticker snapshot for a pair."""
        ...


@runtime_checkable
class StreamClientProtocol(Protocol):
    """
    Protocol for live market data over a streaming connection.

    Semantic Role: Live event source
    Relationships:
    - Owns: one streaming session and its channel registry
    - Emits: Trade and Candle events to registered handlers

    Subscriptions are asynchronous: ``subscribe`` returns once the request
    is sent, and the stream becomes active when the exchange confirms it.
    """

    async def connect(self) -> None:
        """Open the streaming connection."""
        ...

    async def disconnect(self) -> None:
        """Close the connection and forget all subscriptions."""
        ...

    async def subscribe(self, subscription: Subscription) -> None:
        """Request a stream; it stays pending until confirmed."""
        ...

    async def unsubscribe(self, subscription: Subscription) -> None:
        """Stop a confirmed stream; unknown subscriptions are a no-op."""
        ...

    def on_trade(self, handler: TradeHandler) -> SubscriberHandle:
        """Register a trade handler."""
        ...

    def on_candle(self, handler: CandleHandler) -> SubscriberHandle:
        """Register a candle handler."""
        ...

    def remove_handler(self, handle: SubscriberHandle) -> bool:
        """Remove a previously registered handler."""
        ...

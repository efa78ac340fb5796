"""
Bitfinex streaming client.

Composes the pieces of the live feed:
- WebSocketSession for the connection and its reconnect state machine
- ChannelRegistry for channel id <-> subscription bookkeeping
- BitfinexMessageDispatcher for frame classification
- ChannelLanes for per-channel sequential dispatch
- EventBus for handler registration
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from src.connector.adapters.bitfinex.data import candle_key, trading_symbol
from src.connector.adapters.bitfinex.dispatcher import BitfinexMessageDispatcher
from src.connector.adapters.bitfinex.timeframes import timeframe_for_period
from src.connector.config import ConnectionConfig
from src.connector.connection.resilient import (
    TRANSPORT_ERRORS,
    Connector,
    WebSocketSession,
    open_websocket,
)
from src.connector.connection.retry import Sleep
from src.connector.enums import DataKind, SessionState, TradeSide
from src.connector.exceptions import ConnectorError, ReconnectExhaustedError
from src.connector.model import Subscription, Trade
from src.connector.protocols.clients import CandleHandler, TradeHandler
from src.connector.service.event_bus import EventBus, SubscriberHandle
from src.connector.service.lanes import ChannelLanes
from src.connector.service.registry import ChannelRegistry

logger = logging.getLogger(__name__)


def subscribe_message(subscription: Subscription) -> dict[str, Any]:
    """Build the outbound subscribe request for a subscription."""
    match subscription.kind:
        case DataKind.TRADES:
            return {
                "event": "subscribe",
                "channel": DataKind.TRADES.value,
                "symbol": trading_symbol(subscription.pair),
            }
        case DataKind.CANDLES:
            return {
                "event": "subscribe",
                "channel": DataKind.CANDLES.value,
                "key": candle_key(subscription.pair, subscription.timeframe or ""),
            }


def unsubscribe_message(channel_id: int) -> dict[str, Any]:
    """Build the outbound unsubscribe request for a channel."""
    return {"event": "unsubscribe", "chanId": channel_id}


class BitfinexStreamClient:
    """
    Live trades and candles from the Bitfinex streaming API.

    Subscriptions are asynchronous: ``subscribe`` returns once the request
    is written, and the stream becomes active when the exchange confirms
    it. Data for a subscription is delivered to the registered handlers.
    """

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        connector: Connector = open_websocket,
        sleep: Sleep = asyncio.sleep,
        on_fatal: Callable[[ReconnectExhaustedError], None] | None = None,
    ) -> None:
        """
        Initialize the stream client.

        Args:
            config: Connection settings; defaults are read from the environment
            connector: Opens the transport, replaceable in tests
            sleep: Awaitable sleep used for reconnect backoff
            on_fatal: Notified when the connection is lost for good in the
                background

        """
        self.config = config or ConnectionConfig()
        self._on_fatal = on_fatal

        self.registry = ChannelRegistry()
        self.bus = EventBus()
        self.lanes = ChannelLanes()
        self.dispatcher = BitfinexMessageDispatcher(
            self.registry,
            self.bus,
            lanes=self.lanes.submit,
            release=self.lanes.release,
        )
        self.session = WebSocketSession(
            url=self.config.ws_url,
            on_message=self.dispatcher.submit,
            handshake=[{"event": "conf", "flags": self.config.conf_flags}],
            max_reconnect_attempts=self.config.max_reconnect_attempts,
            backoff_base=self.config.backoff_base,
            on_reconnected=self._on_reconnected,
            on_fatal=self._handle_fatal,
            connector=connector,
            sleep=sleep,
        )

    @property
    def state(self) -> SessionState:
        """Lifecycle state of the underlying session."""
        return self.session.state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Open the streaming connection.

        Raises:
            ReconnectExhaustedError: When no connection could be established

        """
        await self.session.connect()

    async def disconnect(self) -> None:
        """Close the connection, stop dispatch and forget all subscriptions."""
        await self.session.disconnect()
        await self.lanes.close()
        self.registry.clear()

    async def dispose(self) -> None:
        """Tear everything down; the client cannot be reconnected afterwards."""
        await self.session.dispose()
        await self.lanes.close()
        self.registry.clear()

    async def __aenter__(self) -> "BitfinexStreamClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def subscribe(self, subscription: Subscription) -> None:
        """
        Request a stream. It stays pending until the exchange confirms it.

        Raises:
            NotConnectedError: If the session is not open

        """
        if self.registry.channel_for(subscription) is not None:
            logger.info(f"Already subscribed to {subscription.describe()}")
            return

        self.registry.add_pending(subscription)
        try:
            await self.session.send(subscribe_message(subscription))
        except Exception:
            self.registry.discard_pending(subscription)
            raise
        logger.info(f"Subscription requested - {subscription.describe()}")

    async def unsubscribe(self, subscription: Subscription) -> None:
        """
        Stop a confirmed stream.

        Unknown, already removed and still pending subscriptions are a
        silent no-op: nothing is sent and a pending entry is forgotten.

        Raises:
            NotConnectedError: If the stream is active but the session is
                not open; the registry entry is kept

        """
        channel_id = self.registry.channel_for(subscription)
        if channel_id is None:
            self.registry.discard_pending(subscription)
            logger.debug(f"No active channel for {subscription.describe()}")
            return

        await self.session.send(unsubscribe_message(channel_id))
        self.registry.remove(subscription)
        self.lanes.release(channel_id)
        logger.info(f"Unsubscribed from {subscription.describe()}")

    async def subscribe_trades(self, pair: str) -> Subscription:
        """Subscribe to the trades stream of a pair."""
        subscription = Subscription.trades(pair)
        await self.subscribe(subscription)
        return subscription

    async def subscribe_candles(self, pair: str, period_seconds: int) -> Subscription:
        """
        Subscribe to the candle stream of a pair.

        Raises:
            ConfigurationError: The period has no exchange timeframe

        """
        subscription = Subscription.candles(pair, timeframe_for_period(period_seconds))
        await self.subscribe(subscription)
        return subscription

    async def unsubscribe_trades(self, pair: str) -> None:
        """Unsubscribe from the trades stream of a pair."""
        await self.unsubscribe(Subscription.trades(pair))

    async def unsubscribe_candles(self, pair: str, period_seconds: int) -> None:
        """Unsubscribe from the candle stream of a pair."""
        await self.unsubscribe(
            Subscription.candles(pair, timeframe_for_period(period_seconds))
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_trade(self, handler: TradeHandler) -> SubscriberHandle:
        """Register a handler for every trade."""
        return self.bus.on_trade(handler)

    def on_buy_trade(self, handler: TradeHandler) -> SubscriberHandle:
        """Register a handler for buy trades only."""
        return self.bus.on_trade(_side_filter(TradeSide.BUY, handler))

    def on_sell_trade(self, handler: TradeHandler) -> SubscriberHandle:
        """Register a handler for sell trades only."""
        return self.bus.on_trade(_side_filter(TradeSide.SELL, handler))

    def on_candle(self, handler: CandleHandler) -> SubscriberHandle:
        """Register a handler for every candle."""
        return self.bus.on_candle(handler)

    def remove_handler(self, handle: SubscriberHandle) -> bool:
        """Remove a previously registered handler."""
        return self.bus.remove(handle)

    # ------------------------------------------------------------------
    # Session callbacks
    # ------------------------------------------------------------------

    async def _on_reconnected(self) -> None:
        """
        Drop the old connection's channel ids, then replay if enabled.

        Channel ids are only valid on the connection that confirmed them.
        Every subscription is kept as pending so a later ``subscribe``
        sends a fresh request.
        """
        self.registry.reset_channels()
        await self.lanes.close()
        if not self.config.resubscribe_on_reconnect:
            return

        for subscription in self.registry.subscriptions():
            try:
                await self.session.send(subscribe_message(subscription))
            except (ConnectorError, *TRANSPORT_ERRORS) as e:
                logger.warning(
                    f"Could not resubscribe {subscription.describe()}: {e}"
                )
                return
            logger.info(f"Resubscribed - {subscription.describe()}")

    def _handle_fatal(self, error: ReconnectExhaustedError) -> None:
        logger.error(f"Streaming connection lost for good: {error}")
        if self._on_fatal is not None:
            self._on_fatal(error)


def _side_filter(side: TradeSide, handler: TradeHandler) -> TradeHandler:
    def filtered(trade: Trade) -> None:
        if trade.side == side:
            handler(trade)

    return filtered

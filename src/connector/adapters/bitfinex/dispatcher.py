"""
Bitfinex streaming message dispatcher.

Classifies inbound frames and turns channel data into domain events:

- JSON objects are events. ``subscribed`` binds a channel id in the
  registry, ``unsubscribed`` releases it, ``error`` drops a pending
  subscription, ``info``/``conf`` are logged.
- JSON arrays are data frames keyed by a leading channel id. Heartbeats are
  discarded, unknown channels are dropped, and the second element's shape
  decides between a tagged trade update, a snapshot (array of arrays) and a
  single update (flat array).

A row that fails to parse is dropped on its own; it never aborts the rest of
the frame or the stream.
"""

import json
import logging
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from src.connector.adapters.bitfinex.data import BitfinexEvent, CandleRow, TradeRow
from src.connector.enums import DataKind, MessageType
from src.connector.model import Candle, Subscription, Trade
from src.connector.service.event_bus import EventBus
from src.connector.service.registry import ChannelRegistry

logger = logging.getLogger(__name__)

HEARTBEAT = "hb"
TRADE_UPDATE = "tu"
TRADE_EXECUTED = "te"

# Schedules a data frame on its channel's sequential lane
LaneSubmitter = Callable[[int, Callable[[list[Any]], None], list[Any]], None]


def decode_frame(raw: str) -> Any:
    """Decode a wire frame, keeping every JSON number exact."""
    return json.loads(raw, parse_float=Decimal)


def classify(message: Any) -> MessageType:
    """
    Classify a decoded frame by its shape.

    Returns:
        The message type; UNKNOWN for anything that is neither a known
        event nor a well-formed data frame

    """
    if isinstance(message, dict):
        try:
            return MessageType(message.get("event"))
        except ValueError:
            return MessageType.UNKNOWN

    if not isinstance(message, list) or len(message) < 2:
        return MessageType.UNKNOWN
    if not isinstance(message[0], int) or isinstance(message[0], bool):
        return MessageType.UNKNOWN

    payload = message[1]
    if payload == HEARTBEAT:
        return MessageType.HEARTBEAT
    if payload == TRADE_UPDATE:
        return MessageType.TRADE if len(message) > 2 else MessageType.UNKNOWN
    if payload == TRADE_EXECUTED:
        return MessageType.TRADE_EXECUTED
    if isinstance(payload, list):
        if payload and all(isinstance(row, list) for row in payload):
            return MessageType.SNAPSHOT
        if payload and isinstance(payload[0], list):
            # Mixed rows and scalars is not a shape the exchange sends
            return MessageType.UNKNOWN
        if not payload:
            return MessageType.SNAPSHOT
        return MessageType.UPDATE
    return MessageType.UNKNOWN


class BitfinexMessageDispatcher:
    """
    Routes streaming frames to the registry and the event bus.

    ``handle_message`` processes a frame completely on the caller's task.
    ``submit`` applies events inline but hands data frames to a per-channel
    lane, so slow handlers never stall the receive loop while frames of one
    channel keep their order.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        bus: EventBus,
        lanes: LaneSubmitter | None = None,
        release: Callable[[int], object] | None = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            registry: Sole authority for channel id resolution
            bus: Receives the parsed trade and candle events
            lanes: Schedules data frames per channel; None processes inline
            release: Called with a channel id once its mapping is removed

        """
        self.registry = registry
        self.bus = bus
        self._lanes = lanes
        self._release = release

    def handle_message(self, raw: str) -> None:
        """Decode and fully process one frame on the current task."""
        message = self._decode(raw)
        if message is None:
            return
        if isinstance(message, dict):
            self.handle_event(message)
        else:
            self.handle_data(message)

    def submit(self, raw: str) -> None:
        """
        Process one frame from the receive loop without blocking it.

        Events update the registry before the next frame is read, so data
        that follows a confirmation on the wire always finds its channel.
        """
        message = self._decode(raw)
        if message is None:
            return
        if isinstance(message, dict):
            self.handle_event(message)
            return

        message_type = classify(message)
        if message_type in (MessageType.HEARTBEAT, MessageType.UNKNOWN):
            self._drop(message, message_type)
            return
        if self._lanes is None:
            self.handle_data(message)
        elif self.registry.lookup(message[0]) is None:
            logger.warning(f"Unknown channel ID: {message[0]}")
        else:
            self._lanes(message[0], self.handle_data, message)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def handle_event(self, message: dict[str, Any]) -> None:
        """Apply an event frame to the registry."""
        try:
            event = BitfinexEvent.model_validate(message)
        except ValidationError as e:
            logger.warning(f"Malformed event frame {message}: {e}")
            return

        match classify(message):
            case MessageType.SUBSCRIBED:
                self._on_subscribed(event)
            case MessageType.UNSUBSCRIBED:
                if event.chan_id is not None:
                    removed = self.registry.remove_channel(event.chan_id)
                    if self._release is not None:
                        self._release(event.chan_id)
                    logger.info(f"Unsubscribed from channel {event.chan_id} ({removed})")
            case MessageType.ERROR:
                self._on_error(event)
            case MessageType.INFO:
                logger.info(f"Exchange info: version={event.version} {message}")
            case MessageType.CONF:
                logger.info(f"Configuration acknowledged: {event.status}")
            case _:
                logger.debug(f"Unhandled event type: {event.event}")

    def _on_subscribed(self, event: BitfinexEvent) -> None:
        if event.chan_id is None:
            logger.warning(f"Subscription confirmation without chanId: {event}")
            return
        subscription = event.subscription
        if subscription is None:
            logger.warning(f"Unsupported subscription confirmation: {event}")
            return

        self.registry.confirm(event.chan_id, subscription)
        logger.info(
            f"Subscription confirmed - {subscription.describe()}, "
            f"channel {event.chan_id}"
        )

    def _on_error(self, event: BitfinexEvent) -> None:
        subscription = event.subscription
        if subscription is not None:
            self.registry.discard_pending(subscription)
        logger.error(f"Exchange error {event.code}: {event.msg} ({subscription})")

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def handle_data(self, message: list[Any]) -> None:
        """Turn one data frame into zero or more domain events."""
        message_type = classify(message)
        if message_type in (MessageType.HEARTBEAT, MessageType.UNKNOWN):
            self._drop(message, message_type)
            return

        channel_id = message[0]
        subscription = self.registry.lookup(channel_id)
        if subscription is None:
            logger.warning(f"Unknown channel ID: {channel_id}")
            return

        match message_type:
            case MessageType.TRADE:
                self._emit_row(subscription, message[2], DataKind.TRADES)
            case MessageType.TRADE_EXECUTED:
                # Every execution is repeated as a "tu" update; emit once
                logger.debug(f"Skipping trade execution on channel {channel_id}")
            case MessageType.SNAPSHOT:
                for row in message[1]:
                    self._emit_row(subscription, row, subscription.kind)
            case MessageType.UPDATE:
                self._emit_row(subscription, message[1], subscription.kind)

    def _emit_row(self, subscription: Subscription, row: Any, kind: DataKind) -> None:
        """Parse one row for the given kind and publish it."""
        try:
            event = self._parse_row(row, kind, subscription.pair)
        except ValidationError as e:
            logger.warning(
                f"Dropping malformed {kind.value} row for {subscription.pair}: "
                f"{row!r} ({e.error_count()} errors)"
            )
            return

        if isinstance(event, Trade):
            self.bus.publish_trade(event)
        else:
            self.bus.publish_candle(event)

    @staticmethod
    def _parse_row(row: Any, kind: DataKind, pair: str) -> Trade | Candle:
        if kind == DataKind.TRADES:
            return TradeRow.model_validate(row).to_domain(pair)
        return CandleRow.model_validate(row).to_domain(pair)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _decode(raw: str) -> Any:
        try:
            return decode_frame(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON frame: {e}")
            return None

    @staticmethod
    def _drop(message: Any, message_type: MessageType) -> None:
        if message_type == MessageType.UNKNOWN:
            logger.warning(f"Unrecognized frame: {message!r}")

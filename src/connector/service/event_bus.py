"""
Synchronous multicast of domain events.

Each topic keeps an ordered list of subscriber handles. Publishing invokes
every handler in registration order on the caller's task. A failing handler
is logged and skipped so one bad consumer cannot starve the others.
"""

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from src.connector.model import Candle, Trade

logger = logging.getLogger(__name__)

T = TypeVar("T")

_handle_ids = itertools.count(1)


@dataclass(frozen=True)
class SubscriberHandle:
    """Opaque token returned on registration, used to remove a handler."""

    topic: str
    handle_id: int = field(default_factory=lambda: next(_handle_ids))


class Topic(Generic[T]):
    """Ordered list of handlers for one event type."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[tuple[SubscriberHandle, Callable[[T], None]]] = []

    def __len__(self) -> int:
        return len(self._handlers)

    def add(self, handler: Callable[[T], None]) -> SubscriberHandle:
        """Append a handler; it runs after every handler added before it."""
        handle = SubscriberHandle(topic=self.name)
        self._handlers.append((handle, handler))
        return handle

    def remove(self, handle: SubscriberHandle) -> bool:
        """Remove a handler. Returns False if the handle is not registered."""
        for index, (registered, _) in enumerate(self._handlers):
            if registered == handle:
                del self._handlers[index]
                return True
        return False

    def publish(self, event: T) -> int:
        """
        Deliver an event to all handlers in registration order.

        Returns:
            Number of handlers that completed without raising

        """
        delivered = 0
        # Snapshot so handlers may add or remove handlers while publishing
        for handle, handler in list(self._handlers):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    f"Handler {handle.handle_id} on topic '{self.name}' failed"
                )
        return delivered


class EventBus:
    """Typed trade and candle topics shared by a stream client."""

    def __init__(self) -> None:
        self.trades: Topic[Trade] = Topic("trades")
        self.candles: Topic[Candle] = Topic("candles")

    def on_trade(self, handler: Callable[[Trade], None]) -> SubscriberHandle:
        """Register a trade handler."""
        return self.trades.add(handler)

    def on_candle(self, handler: Callable[[Candle], None]) -> SubscriberHandle:
        """Register a candle handler."""
        return self.candles.add(handler)

    def remove(self, handle: SubscriberHandle) -> bool:
        """Remove a handler from whichever topic it was registered on."""
        match handle.topic:
            case "trades":
                return self.trades.remove(handle)
            case "candles":
                return self.candles.remove(handle)
            case _:
                return False

    def publish_trade(self, trade: Trade) -> int:
        """Deliver a trade to all trade handlers."""
        return self.trades.publish(trade)

    def publish_candle(self, candle: Candle) -> int:
        """Deliver a candle to all candle handlers."""
        return self.candles.publish(candle)

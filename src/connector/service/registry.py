"""
Channel registry.

Bidirectional mapping between logical subscriptions and the numeric channel
identifiers the exchange assigns to them. Channel ids are opaque: only a
confirmation event from the exchange can create one.

Lifecycle of a subscription:
- pending: a subscribe request was sent, no channel id yet
- active: a confirmation event bound it to a channel id
- removed: explicit unsubscribe, or registry cleared on teardown

All mutations take an exclusive lock, so confirmations for different
channels arriving from different dispatch units cannot corrupt each other.
"""

import logging
import threading

from src.connector.model import Subscription

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Owned registry of pending and active channel subscriptions."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_channel: dict[int, Subscription] = {}
        self._by_subscription: dict[Subscription, int] = {}
        self._pending: set[Subscription] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_channel)

    def __contains__(self, channel_id: object) -> bool:
        with self._lock:
            return channel_id in self._by_channel

    def add_pending(self, subscription: Subscription) -> None:
        """Record that a subscribe request is in flight."""
        with self._lock:
            if subscription not in self._by_subscription:
                self._pending.add(subscription)

    def discard_pending(self, subscription: Subscription) -> bool:
        """Forget an unconfirmed subscription. Returns True if it was pending."""
        with self._lock:
            if subscription in self._pending:
                self._pending.discard(subscription)
                return True
            return False

    def is_pending(self, subscription: Subscription) -> bool:
        """Check whether a subscription is still awaiting confirmation."""
        with self._lock:
            return subscription in self._pending

    def confirm(self, channel_id: int, subscription: Subscription) -> None:
        """
        Bind a channel id to a subscription.

        Keeps at most one channel per subscription: a newer confirmation
        replaces the older binding in both directions.
        """
        with self._lock:
            previous_channel = self._by_subscription.get(subscription)
            if previous_channel is not None and previous_channel != channel_id:
                logger.info(
                    f"Rebinding {subscription.describe()} "
                    f"from channel {previous_channel} to {channel_id}"
                )
                del self._by_channel[previous_channel]

            previous_subscription = self._by_channel.get(channel_id)
            if previous_subscription is not None and previous_subscription != subscription:
                del self._by_subscription[previous_subscription]

            self._by_channel[channel_id] = subscription
            self._by_subscription[subscription] = channel_id
            self._pending.discard(subscription)

    def lookup(self, channel_id: int) -> Subscription | None:
        """Resolve a channel id to its subscription, if active."""
        with self._lock:
            return self._by_channel.get(channel_id)

    def channel_for(self, subscription: Subscription) -> int | None:
        """Resolve a subscription to its active channel id, if any."""
        with self._lock:
            return self._by_subscription.get(subscription)

    def remove(self, subscription: Subscription) -> int | None:
        """
        Remove both directions of an active mapping.

        Returns:
            The channel id that was bound, or None if there was none

        """
        with self._lock:
            channel_id = self._by_subscription.pop(subscription, None)
            if channel_id is not None:
                self._by_channel.pop(channel_id, None)
            return channel_id

    def remove_channel(self, channel_id: int) -> Subscription | None:
        """Remove an active mapping by channel id."""
        with self._lock:
            subscription = self._by_channel.pop(channel_id, None)
            if subscription is not None:
                self._by_subscription.pop(subscription, None)
            return subscription

    def subscriptions(self) -> list[Subscription]:
        """All known subscriptions, active first, then pending."""
        with self._lock:
            active = list(self._by_subscription)
            return active + [s for s in self._pending if s not in self._by_subscription]

    def reset_channels(self) -> list[Subscription]:
        """
        Demote every active subscription back to pending.

        Channel ids do not survive a new connection, so this is used when
        subscriptions are replayed after a reconnect.
        """
        with self._lock:
            demoted = list(self._by_subscription)
            self._pending.update(demoted)
            self._by_channel.clear()
            self._by_subscription.clear()
            return demoted

    def clear(self) -> None:
        """Forget every subscription, pending or active."""
        with self._lock:
            self._by_channel.clear()
            self._by_subscription.clear()
            self._pending.clear()

"""Event delivery and channel bookkeeping services."""

from src.connector.service.event_bus import EventBus, SubscriberHandle
from src.connector.service.lanes import ChannelLanes
from src.connector.service.registry import ChannelRegistry

__all__ = ["ChannelLanes", "ChannelRegistry", "EventBus", "SubscriberHandle"]

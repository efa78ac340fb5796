"""
Enums for the connector domain.

This module defines the vocabulary shared by the REST adapter, the streaming
session and the message dispatcher.

"""

from __future__ import annotations

import enum
from decimal import Decimal

# =============================================================================
# MARKET DATA ENUMS
# =============================================================================


class TradeSide(str, enum.Enum):
    """
    Standardized enum for trade sides.

    Bitfinex encodes the side in the sign of the trade amount, so the
    side is always derived rather than read from the wire.
    """

    BUY = "buy"
    SELL = "sell"

    @classmethod
    def from_signed_amount(cls, amount: Decimal) -> TradeSide:
        """
        Derive the side from a signed exchange amount.

        Args:
            amount: Raw signed amount (positive for buys)

        Returns:
            BUY when amount > 0, SELL otherwise

        """
        return cls.BUY if amount > 0 else cls.SELL


class DataKind(str, enum.Enum):
    """Kinds of market data a subscription can carry."""

    TRADES = "trades"
    CANDLES = "candles"


# =============================================================================
# PROTOCOL ENUMS
# =============================================================================


class MessageType(str, enum.Enum):
    """
    Classification of inbound streaming frames.

    Event frames are JSON objects; everything else is a channel data
    frame keyed by a leading channel identifier.
    """

    HEARTBEAT = "heartbeat"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    INFO = "info"
    CONF = "conf"
    ERROR = "error"
    TRADE = "trade"
    TRADE_EXECUTED = "trade_executed"
    SNAPSHOT = "snapshot"
    UPDATE = "update"
    UNKNOWN = "unknown"


class SessionState(str, enum.Enum):
    """Lifecycle states of a streaming session."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    FATAL = "fatal"  # Terminal, the session must be re-created


class ErrorKind(str, enum.Enum):
    """Classified failure kinds used to drive retry decisions."""

    NETWORK = "network"  # Transient, worth retrying
    PROTOCOL = "protocol"  # Bad status or payload, never retried

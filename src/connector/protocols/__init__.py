"""Client capability protocols."""

from src.connector.protocols.clients import (
    CandleHandler,
    RestClientProtocol,
    StreamClientProtocol,
    TradeHandler,
)

__all__ = [
    "CandleHandler",
    "RestClientProtocol",
    "StreamClientProtocol",
    "TradeHandler",
]

"""Connector domain models."""

from src.connector.model.candle import Candle
from src.connector.model.subscription import Subscription
from src.connector.model.ticker import Ticker
from src.connector.model.trade import Trade

__all__ = [
    "Candle",
    "Subscription",
    "Ticker",
    "Trade",
]

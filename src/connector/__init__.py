"""Bitfinex market data connector package."""

from src.connector.model import Candle, Subscription, Ticker, Trade
from src.connector.service.market_stream import stream_market_data

__all__ = ["Candle", "Subscription", "Ticker", "Trade", "stream_market_data"]

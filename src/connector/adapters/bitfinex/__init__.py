"""Bitfinex public REST and streaming adapters."""

from src.connector.adapters.bitfinex.rest import BitfinexRestClient
from src.connector.adapters.bitfinex.stream import BitfinexStreamClient

__all__ = ["BitfinexRestClient", "BitfinexStreamClient"]

"""
Simple market data streaming service.

This module provides a one-call way to start streaming trades and candles.
It builds the exchange stream client, registers the callbacks, connects and
subscribes every pair.
"""

import logging

from src.connector.adapters.bitfinex.stream import BitfinexStreamClient
from src.connector.adapters.bitfinex.timeframes import timeframe_for_period
from src.connector.config import ConnectionConfig
from src.connector.exceptions import ConfigurationError
from src.connector.protocols.clients import CandleHandler, TradeHandler

logger = logging.getLogger(__name__)


async def stream_market_data(
    pairs: list[str],
    on_trade: TradeHandler | None = None,
    on_candle: CandleHandler | None = None,
    period_seconds: int | None = None,
    exchange: str = "bitfinex",
    config: ConnectionConfig | None = None,
) -> BitfinexStreamClient:
    """
    Stream market data from the specified exchange.

    This is the main entry point for market data streaming. Trades are
    subscribed when ``on_trade`` is given; candles when ``on_candle`` and
    ``period_seconds`` are given.

    Args:
        pairs: Pairs without prefix (e.g., ["BTCUSD", "ETHUSD"])
        on_trade: Callback for every trade
        on_candle: Callback for every candle
        period_seconds: Candle period, must map to an exchange timeframe
        exchange: Exchange to stream from (currently only "bitfinex")
        config: Connection settings; defaults are read from the environment

    Returns:
        The connected stream client, for further subscriptions and shutdown

    Raises:
        ConfigurationError: Unsupported exchange, or candles requested
            without a supported period

    """
    if on_candle is not None and period_seconds is None:
        raise ConfigurationError("period_seconds is required to stream candles")
    if period_seconds is not None:
        timeframe_for_period(period_seconds)

    match exchange.lower():
        case "bitfinex":
            client = BitfinexStreamClient(config=config)
        case _:
            raise ConfigurationError(f"Unsupported exchange: {exchange}")

    if on_trade is not None:
        client.on_trade(on_trade)
    if on_candle is not None:
        client.on_candle(on_candle)

    await client.connect()
    try:
        for pair in pairs:
            if on_trade is not None:
                await client.subscribe_trades(pair)
            if on_candle is not None and period_seconds is not None:
                await client.subscribe_candles(pair, period_seconds)
    except Exception:
        await client.disconnect()
        raise

    logger.info(f"Streaming {len(pairs)} pairs from {exchange}")
    return client

"""Candle (OHLCV) domain model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class Candle(BaseModel):
    """
    One aggregation period of trading activity for a pair.

    ``total_price`` is the cumulative notional when the source provides
    it; most candle payloads do not.
    """

    pair: str = Field(description="Trading pair without prefix (e.g., 'BTCUSD')")
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Field(description="Cumulative volume over the period")
    open_time: datetime = Field(description="Opening timestamp of the period")
    total_price: Decimal | None = Field(
        default=None, description="Cumulative notional, when provided"
    )

    model_config = ConfigDict(frozen=True)

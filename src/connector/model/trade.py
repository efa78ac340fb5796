"""
Trade domain model.

This model represents a single executed trade in the domain layer,
independent of the exchange wire format. Exchange-specific rows are
transformed into this model at the adapter boundary.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.connector.enums import TradeSide


class Trade(BaseModel):
    """
    Domain model for an executed trade.

    The amount is always the magnitude of the trade; the direction lives
    in ``side``. The model is frozen for immutability and thread safety.
    """

    trade_id: str = Field(description="Opaque trade identifier from exchange")
    pair: str = Field(description="Trading pair without prefix (e.g., 'BTCUSD')")
    price: Decimal = Field(description="Executed trade price")
    amount: Decimal = Field(ge=0, description="Trade size in base currency")
    side: TradeSide = Field(description="Trade side (BUY or SELL)")
    timestamp: datetime = Field(description="Timestamp of trade execution")

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
    )

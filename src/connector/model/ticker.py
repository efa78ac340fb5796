"""
Ticker domain model.

A ticker is a point-in-time summary of the book top and the last 24 hours
of activity. It carries no pair: callers already know which pair they asked
for.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class Ticker(BaseModel):
    """Market ticker snapshot."""

    model_config = ConfigDict(frozen=True)

    bid: Decimal = Field(description="Best bid price")
    bid_size: Decimal = Field(description="Sum of the 25 highest bid sizes")
    ask: Decimal = Field(description="Best ask price")
    ask_size: Decimal = Field(description="Sum of the 25 lowest ask sizes")
    daily_change: Decimal = Field(description="Price change since yesterday")
    daily_change_relative: Decimal = Field(
        description="Relative price change since yesterday (0.01 = 1%)"
    )
    last_price: Decimal
    volume: Decimal = Field(description="24h volume")
    high: Decimal = Field(description="24h high")
    low: Decimal = Field(description="24h low")

    # Computed derived values
    @computed_field  # type: ignore[misc]
    @property
    def spread(self) -> Decimal:
        """Calculate bid-ask spread."""
        return self.ask - self.bid

    @computed_field  # type: ignore[misc]
    @property
    def mid_price(self) -> Decimal:
        """Calculate mid price between bid and ask."""
        return (self.bid + self.ask) / Decimal("2")

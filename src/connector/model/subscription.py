"""
Subscription model.

A subscription is the logical identity of a stream: which pair and which
kind of data. Candle subscriptions also carry the exchange timeframe token,
since two candle streams of one pair at different timeframes are distinct
channels on the exchange.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.connector.enums import DataKind


class Subscription(BaseModel):
    """Hashable (pair, kind, timeframe) identity of a market data stream."""

    pair: str = Field(min_length=1, description="Pair without prefix (e.g., 'BTCUSD')")
    kind: DataKind
    timeframe: str | None = Field(
        default=None, description="Timeframe token for candle streams (e.g., '1m')"
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_timeframe(self) -> "Subscription":
        """Candles need a timeframe; trades must not have one."""
        if self.kind == DataKind.CANDLES and not self.timeframe:
            raise ValueError("Candle subscriptions require a timeframe")
        if self.kind == DataKind.TRADES and self.timeframe is not None:
            raise ValueError("Trade subscriptions do not take a timeframe")
        return self

    @classmethod
    def trades(cls, pair: str) -> "Subscription":
        """Build a trades subscription."""
        return cls(pair=pair, kind=DataKind.TRADES)

    @classmethod
    def candles(cls, pair: str, timeframe: str) -> "Subscription":
        """Build a candles subscription."""
        return cls(pair=pair, kind=DataKind.CANDLES, timeframe=timeframe)

    def describe(self) -> str:
        """Short label for logs."""
        if self.timeframe:
            return f"{self.kind.value}:{self.timeframe}:{self.pair}"
        return f"{self.kind.value}:{self.pair}"

"""
Bitfinex API v2 Pydantic models.

Bitfinex encodes market data as positional JSON arrays. These models give
each position a name, validate it, and convert the result into domain
models. Event frames (JSON objects) are modeled the same way.

Key design principles:
- Raw models inherit ONLY from BaseModel
- Positional arrays are mapped to named fields in a before-validator
- Wrong arity or non-numeric fields fail validation for that row only
- ``to_domain`` produces the exchange-independent model
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from src.connector.enums import DataKind, TradeSide
from src.connector.model import Candle, Subscription, Ticker, Trade

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Symbol prefixes: t for trading pairs, f for funding currencies
SYMBOL_PREFIXES = ("t", "f")


def from_millis(mts: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return EPOCH + timedelta(milliseconds=mts)


def to_millis(moment: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive means UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return (moment - EPOCH) // timedelta(milliseconds=1)


def strip_symbol_prefix(symbol: str) -> str:
    """Turn an exchange symbol like 'tBTCUSD' into the pair 'BTCUSD'."""
    if len(symbol) > 1 and symbol[0] in SYMBOL_PREFIXES:
        return symbol[1:]
    return symbol


def trading_symbol(pair: str) -> str:
    """Turn a pair like 'BTCUSD' into the exchange symbol 'tBTCUSD'."""
    return f"t{pair}"


def candle_key(pair: str, timeframe: str) -> str:
    """Build the candle channel key, e.g. 'trade:1m:tBTCUSD'."""
    return f"trade:{timeframe}:{trading_symbol(pair)}"


class PositionalRow(BaseModel):
    """
    Base for models parsed from fixed-position arrays.

    Subclasses list their field names in ``positions``; trailing optional
    fields are listed in ``optional_positions``. Extra trailing elements
    are ignored.
    """

    positions: ClassVar[tuple[str, ...]] = ()
    optional_positions: ClassVar[tuple[str, ...]] = ()

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def map_positions(cls, data: Any) -> Any:
        """Map a positional array onto named fields."""
        if isinstance(data, dict):
            return data
        if not isinstance(data, list | tuple):
            raise ValueError(f"Expected an array, got {type(data).__name__}")
        if len(data) < len(cls.positions):
            raise ValueError(
                f"Expected at least {len(cls.positions)} fields, got {len(data)}"
            )
        names = cls.positions + cls.optional_positions
        return dict(zip(names, data, strict=False))


# Trades
class TradeRow(PositionalRow):
    """Trade row: [ID, MTS, AMOUNT, PRICE]."""

    positions: ClassVar[tuple[str, ...]] = ("id", "mts", "amount", "price")

    id: int | str
    mts: int
    amount: Decimal  # Signed: negative amounts are sells
    price: Decimal

    def to_domain(self, pair: str) -> Trade:
        """Transform to the Trade domain model."""
        return Trade(
            trade_id=str(self.id),
            pair=pair,
            price=self.price,
            amount=abs(self.amount),
            side=TradeSide.from_signed_amount(self.amount),
            timestamp=from_millis(self.mts),
        )


# Candles
class CandleRow(PositionalRow):
    """
    Candle row in Bitfinex order: [MTS, OPEN, CLOSE, HIGH, LOW, VOLUME].

    Some payloads append a cumulative notional as a seventh field.
    """

    positions: ClassVar[tuple[str, ...]] = (
        "mts",
        "open",
        "close",
        "high",
        "low",
        "volume",
    )
    optional_positions: ClassVar[tuple[str, ...]] = ("total_price",)

    mts: int
    open: Decimal
    close: Decimal
    high: Decimal
    low: Decimal
    volume: Decimal
    total_price: Decimal | None = None

    def to_domain(self, pair: str) -> Candle:
        """Transform to the Candle domain model."""
        return Candle(
            pair=pair,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
            open_time=from_millis(self.mts),
            total_price=self.total_price,
        )


# Ticker
class TickerRow(PositionalRow):
    """
    Trading ticker: [BID, BID_SIZE, ASK, ASK_SIZE, DAILY_CHANGE,
    DAILY_CHANGE_RELATIVE, LAST_PRICE, VOLUME, HIGH, LOW].
    """

    positions: ClassVar[tuple[str, ...]] = (
        "bid",
        "bid_size",
        "ask",
        "ask_size",
        "daily_change",
        "daily_change_relative",
        "last_price",
        "volume",
        "high",
        "low",
    )

    bid: Decimal
    bid_size: Decimal
    ask: Decimal
    ask_size: Decimal
    daily_change: Decimal
    daily_change_relative: Decimal
    last_price: Decimal
    volume: Decimal
    high: Decimal
    low: Decimal

    def to_domain(self) -> Ticker:
        """Transform to the Ticker domain model."""
        return Ticker.model_validate(self.model_dump())


# Event frames
class BitfinexEvent(BaseModel):
    """
    Any JSON-object frame from the streaming API.

    Only the fields the connector reads are modeled; the rest are ignored.
    """

    event: str
    channel: str | None = None
    chan_id: int | None = Field(default=None, alias="chanId")
    symbol: str | None = None
    key: str | None = None
    code: int | None = None
    msg: str | None = None
    version: int | None = None
    status: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def subscription(self) -> Subscription | None:
        """
        Derive the subscription a subscribed/error event refers to.

        Trades carry a prefixed symbol ('tBTCUSD'); candles carry a key
        ('trade:1m:tBTCUSD') whose third part is the prefixed symbol.
        Returns None when the event names no usable stream.
        """
        try:
            if self.channel == DataKind.TRADES.value and self.symbol:
                return Subscription.trades(strip_symbol_prefix(self.symbol))

            if self.channel == DataKind.CANDLES.value and self.key:
                parts = self.key.split(":", 2)
                if len(parts) == 3:
                    return Subscription.candles(
                        strip_symbol_prefix(parts[2]), parts[1]
                    )
        except ValidationError:
            return None

        return None

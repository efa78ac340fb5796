"""Candle period to Bitfinex timeframe token mapping."""

from src.connector.exceptions import ConfigurationError

# Bitfinex candle timeframes, keyed by period in seconds
TIMEFRAMES: dict[int, str] = {
    60: "1m",
    300: "5m",
    900: "15m",
    1800: "30m",
    3600: "1h",
    7200: "2h",
    14400: "4h",
    86400: "1D",
}


def timeframe_for_period(period_seconds: int) -> str:
    """
    Map a candle period to its exchange timeframe token.

    Raises:
        ConfigurationError: If the period has no exchange timeframe

    """
    try:
        return TIMEFRAMES[period_seconds]
    except KeyError:
        supported = ", ".join(str(p) for p in TIMEFRAMES)
        raise ConfigurationError(
            f"Unsupported candle period: {period_seconds}s (supported: {supported})"
        ) from None

"""
Error taxonomy for the exchange connector.

Every error raised across the public boundary derives from ConnectorError,
so collaborators can catch the whole family in one place.
"""


class ConnectorError(Exception):
    """Base exception for all connector errors."""


class NetworkError(ConnectorError):
    """Transient transport failure that outlived its retry budget."""


class ProtocolError(ConnectorError):
    """Malformed payload or HTTP error status returned by the exchange."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(ConnectorError):
    """Caller supplied an unsupported parameter. Raised before any I/O."""


class NotConnectedError(ConnectorError):
    """Send attempted while the streaming session is not open."""


class ReconnectExhaustedError(ConnectorError):
    """The session gave up after the maximum reconnect attempts."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Exceeded maximum number of reconnect attempts ({attempts})"
        )
        self.attempts = attempts

"""
Connector configuration using Pydantic Settings.

This module provides configuration management for the connector,
allowing environment-based configuration with type validation and defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConnectionConfig(BaseSettings):
    """WebSocket connection configuration."""

    model_config = SettingsConfigDict(env_prefix="CONNECTOR_CONNECTION_")

    # Connection settings
    ws_url: str = "wss://api-pub.bitfinex.com/ws/2"
    conf_flags: int = Field(
        default=32768,
        ge=0,
        description="Flags sent in the post-connect conf message",
    )

    # Resilience settings
    max_reconnect_attempts: int = Field(
        default=5,
        ge=0,
        description="Reconnect attempts before the session turns fatal",
    )
    backoff_base: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Backoff delay is backoff_base ** attempt seconds",
    )
    resubscribe_on_reconnect: bool = Field(
        default=False,
        description="Replay known subscriptions after a successful reconnect",
    )


class RestConfig(BaseSettings):
    """REST adapter configuration."""

    model_config = SettingsConfigDict(env_prefix="CONNECTOR_REST_")

    base_url: str = "https://api-pub.bitfinex.com/v2"
    max_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts for a request failing at the transport level",
    )
    retry_delay: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Fixed delay between attempts in seconds",
    )
    request_timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="HTTP transport timeout in seconds",
    )


class ConnectorConfig(BaseSettings):
    """Root configuration combining all sub-configs."""

    model_config = SettingsConfigDict(env_prefix="CONNECTOR_")

    # Sub-configurations
    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    rest: RestConfig = Field(default_factory=RestConfig)

    # Global settings
    debug: bool = False
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )

    @classmethod
    def from_env(cls) -> "ConnectorConfig":
        """
        Load configuration from environment variables.

        Returns:
            Configured ConnectorConfig instance

        """
        return cls(
            connection=ConnectionConfig(),
            rest=RestConfig(),
        )


# Global config instance
config = ConnectorConfig.from_env()

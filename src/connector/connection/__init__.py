"""Resilient WebSocket connection management and retry helpers."""

from src.connector.connection.resilient import WebSocketSession
from src.connector.connection.retry import ExponentialBackoff, Outcome, RetryPolicy

__all__ = [
    "ExponentialBackoff",
    "Outcome",
    "RetryPolicy",
    "WebSocketSession",
]

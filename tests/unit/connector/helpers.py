"""Test doubles for the streaming session and stream client."""

import asyncio
import json
from typing import Any

from websockets.exceptions import ConnectionClosedError


class FakeTransport:
    """
    In-memory stand-in for a websockets client connection.

    Frames pushed with ``feed`` are returned by ``recv`` in order. ``fail``
    makes the pending or next ``recv`` raise a connection-closed error.
    """

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed_with: int | None = None
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def sent_json(self) -> list[Any]:
        """Sent frames decoded from JSON."""
        return [json.loads(frame) for frame in self.sent]

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def recv(self) -> str | bytes:
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = code

    def feed(self, frame: Any) -> None:
        """Queue an inbound frame; non-strings are JSON-encoded."""
        self._inbox.put_nowait(frame if isinstance(frame, str | bytes) else json.dumps(frame))

    def fail(self) -> None:
        """Make the receive loop observe a dropped connection."""
        self._inbox.put_nowait(ConnectionClosedError(None, None))


class FakeConnector:
    """
    Connector that hands out FakeTransports, or raises queued errors.

    Each call consumes one entry of ``failures`` (None means succeed).
    """

    def __init__(self, failures: list[BaseException | None] | None = None) -> None:
        self.failures = list(failures or [])
        self.transports: list[FakeTransport] = []
        self.urls: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.urls)

    @property
    def last(self) -> FakeTransport:
        return self.transports[-1]

    async def __call__(self, url: str) -> FakeTransport:
        self.urls.append(url)
        if self.failures:
            failure = self.failures.pop(0)
            if failure is not None:
                raise failure
        transport = FakeTransport()
        self.transports.append(transport)
        return transport


class AlwaysFailingConnector(FakeConnector):
    """Connector whose every attempt is refused."""

    async def __call__(self, url: str) -> FakeTransport:
        self.urls.append(url)
        raise ConnectionRefusedError("connection refused")


class RecordingSleep:
    """Sleep replacement that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


async def settle(rounds: int = 10) -> None:
    """Let background tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class BlockingSleep(RecordingSleep):
    """Sleep that records the delay and never finishes on its own."""

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.Event().wait()


async def eventually(predicate, rounds: int = 200) -> bool:
    """Yield to the loop until ``predicate()`` holds or rounds run out."""
    for _ in range(rounds):
        if predicate():
            return True
        await asyncio.sleep(0)
    return predicate()

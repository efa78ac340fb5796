"""
Resilient WebSocket session with automatic reconnection.

This module owns one physical streaming connection and:
- Performs a one-time configuration handshake after every connect
- Reconnects with exponential backoff on transport errors
- Gives up after a bounded number of attempts and turns fatal
- Runs a dedicated receive task and a serialized send path
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol

from websockets.asyncio.client import connect as websockets_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from src.connector.connection.retry import ExponentialBackoff, Sleep
from src.connector.enums import SessionState
from src.connector.exceptions import NotConnectedError, ReconnectExhaustedError

logger = logging.getLogger(__name__)

# Errors that mean the transport is gone or never came up
TRANSPORT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    TimeoutError,
    WebSocketException,
)


class Transport(Protocol):
    """The slice of a websockets client connection the session relies on."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str | bytes: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


Connector = Callable[[str], Awaitable[Transport]]


async def open_websocket(url: str) -> Transport:
    """Default connector: open a websockets client connection."""
    return await websockets_connect(url)


class WebSocketSession:
    """
    One streaming connection with a reconnect state machine.

    States move DISCONNECTED -> CONNECTING -> OPEN. A transport error while
    CONNECTING or OPEN moves to RECONNECTING while attempts remain, otherwise
    to FATAL. FATAL is terminal: a new session must be created.

    Every inbound frame is handed to ``on_message``; the callback must not
    block, since it runs on the receive task.
    """

    def __init__(
        self,
        url: str,
        on_message: Callable[[str], None],
        handshake: Sequence[Mapping[str, Any]] = (),
        max_reconnect_attempts: int = 5,
        backoff_base: float = 2.0,
        on_reconnected: Callable[[], Awaitable[None]] | None = None,
        on_fatal: Callable[[ReconnectExhaustedError], None] | None = None,
        connector: Connector = open_websocket,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Initialize the session.

        Args:
            url: Streaming endpoint
            on_message: Receives every text frame, in arrival order
            handshake: Messages sent once after every successful connect
            max_reconnect_attempts: Attempts before the session turns fatal
            backoff_base: Wait before attempt N is backoff_base ** N seconds
            on_reconnected: Awaited after a reconnect reaches OPEN
            on_fatal: Notified when a background reconnect gives up
            connector: Opens the transport, replaceable in tests
            sleep: Awaitable sleep used for backoff, replaceable in tests

        """
        self.url = url
        self._on_message = on_message
        self._handshake = list(handshake)
        self._backoff = ExponentialBackoff(backoff_base, max_reconnect_attempts)
        self._on_reconnected = on_reconnected
        self._on_fatal = on_fatal
        self._connector = connector
        self._sleep = sleep

        # Connection state
        self._state = SessionState.DISCONNECTED
        self._reconnect_attempt = 0
        self._ws: Transport | None = None
        self._receive_task: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._closing = asyncio.Event()
        self._fatal_error: ReconnectExhaustedError | None = None

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def reconnect_attempt(self) -> int:
        """Reconnect attempts made since the session was last OPEN."""
        return self._reconnect_attempt

    @property
    def is_open(self) -> bool:
        """True when frames can be sent."""
        return self._state == SessionState.OPEN

    async def connect(self) -> None:
        """
        Open the connection, retrying with backoff on failure.

        Raises:
            ReconnectExhaustedError: When every attempt failed, or the
                session is already fatal

        """
        if self._state == SessionState.FATAL:
            raise self._fatal_error or ReconnectExhaustedError(
                self._backoff.max_attempts
            )
        if self._state != SessionState.DISCONNECTED:
            logger.warning(f"Session already {self._state.value}")
            return

        self._closing.clear()
        await self._connect_cycle()

    async def disconnect(self) -> None:
        """
        Close the connection and stop any pending reconnect.

        Sends a normal-closure frame when the transport is usable, otherwise
        tears down locally.
        """
        if self._state == SessionState.FATAL:
            return

        self._closing.set()
        was_open = self._state == SessionState.OPEN
        await self._cancel_receive_task()

        ws, self._ws = self._ws, None
        if ws is not None:
            if was_open:
                try:
                    await ws.close(code=1000, reason="Closing")
                except TRANSPORT_ERRORS as e:
                    logger.warning(f"Error closing connection: {e}")
            else:
                self._abort(ws)

        self._state = SessionState.DISCONNECTED
        self._reconnect_attempt = 0
        logger.info("Session disconnected")

    async def dispose(self) -> None:
        """Cancel everything unconditionally and release the transport."""
        self._closing.set()
        await self._cancel_receive_task()

        ws, self._ws = self._ws, None
        if ws is not None:
            self._abort(ws)

        self._state = SessionState.FATAL
        logger.info("Session disposed")

    async def send(self, message: Mapping[str, Any] | str) -> None:
        """
        Send one frame. Concurrent callers are serialized.

        Raises:
            NotConnectedError: If the session is not OPEN

        """
        payload = message if isinstance(message, str) else json.dumps(message)
        async with self._send_lock:
            if self._state != SessionState.OPEN or self._ws is None:
                raise NotConnectedError(
                    f"Cannot send while session is {self._state.value}"
                )
            await self._ws.send(payload)

    async def __aenter__(self) -> "WebSocketSession":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Connection cycle
    # ------------------------------------------------------------------

    async def _connect_cycle(self, error: BaseException | None = None) -> None:
        """Try to reach OPEN, backing off after every failure."""
        reconnecting = error is not None
        while not self._closing.is_set():
            if error is not None:
                await self._wait_before_retry(error)
                if self._closing.is_set():
                    break

            self._state = SessionState.CONNECTING
            try:
                await self._open_transport()
            except TRANSPORT_ERRORS as e:
                logger.error(f"Connection failed: {e}")
                self._discard_transport()
                error = e
                continue

            if self._closing.is_set():
                self._discard_transport()
                break

            self._state = SessionState.OPEN
            self._reconnect_attempt = 0
            self._receive_task = asyncio.create_task(
                self._receive_loop(self._ws), name="websocket-receive"
            )
            logger.info(f"Connected to {self.url}")

            if reconnecting and self._on_reconnected is not None:
                await self._on_reconnected()
            return

        self._state = SessionState.DISCONNECTED

    async def _open_transport(self) -> None:
        """Connect, then perform the configuration handshake."""
        logger.info(f"Connecting to {self.url}...")
        self._ws = await self._connector(self.url)
        for message in self._handshake:
            await self._ws.send(json.dumps(message))

    async def _wait_before_retry(self, error: BaseException) -> None:
        """
        Back off before the next attempt, or turn fatal.

        The wait ends early when ``disconnect`` is called.
        """
        if self._backoff.exhausted(self._reconnect_attempt):
            self._state = SessionState.FATAL
            self._fatal_error = ReconnectExhaustedError(self._backoff.max_attempts)
            logger.error(str(self._fatal_error))
            raise self._fatal_error from error

        self._reconnect_attempt += 1
        delay = self._backoff.delay(self._reconnect_attempt)
        self._state = SessionState.RECONNECTING
        logger.info(
            f"Scheduling reconnection attempt {self._reconnect_attempt} "
            f"in {delay:g} seconds..."
        )

        sleeper = asyncio.ensure_future(self._sleep(delay))
        closer = asyncio.ensure_future(self._closing.wait())
        try:
            await asyncio.wait({sleeper, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (sleeper, closer):
                waiter.cancel()
            await asyncio.gather(sleeper, closer, return_exceptions=True)

    async def _receive_loop(self, ws: Transport) -> None:
        """Read frames one at a time until the transport fails or closes."""
        while True:
            try:
                frame = await ws.recv()
            except TRANSPORT_ERRORS as e:
                if self._closing.is_set():
                    return
                if isinstance(e, ConnectionClosed):
                    logger.warning(f"WebSocket connection closed: {e}")
                else:
                    logger.error(f"WebSocket error: {e}")
                await self._recover(e)
                return

            message = frame.decode("utf-8") if isinstance(frame, bytes) else frame
            try:
                self._on_message(message)
            except Exception:
                # Don't reconnect on message errors, just log
                logger.exception("Message handling error")

    async def _recover(self, error: BaseException) -> None:
        """
        Reconnect after the connection was lost while OPEN.

        Runs on the old receive task, which stays the supervised task until
        a new receive task replaces it, so disconnect can still cancel it.
        """
        self._discard_transport()
        try:
            await self._connect_cycle(error)
        except ReconnectExhaustedError as fatal:
            if self._on_fatal is not None:
                self._on_fatal(fatal)

    async def _cancel_receive_task(self) -> None:
        """Cancel and join the receive task, unless it is the caller."""
        task, self._receive_task = self._receive_task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    def _discard_transport(self) -> None:
        """Drop the current transport without waiting on the network."""
        ws, self._ws = self._ws, None
        if ws is not None:
            self._abort(ws)

    @staticmethod
    def _abort(ws: Transport) -> None:
        """Tear the transport down locally, if it exposes a raw transport."""
        transport = getattr(ws, "transport", None)
        if transport is not None:
            transport.abort()

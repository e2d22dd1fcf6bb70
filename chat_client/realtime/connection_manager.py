"""
Connection manager for the realtime channel.
Owns one websocket at a time and keeps it alive with a fixed-delay reconnect policy.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

import websockets
from websockets.exceptions import WebSocketException

from chat_client.core.errors import ChatClientError, DecodeError, ErrorKind, TransportError
from chat_client.models import ConnectionState, DecodedEvent
from chat_client.realtime.codec import WireEnvelope, decode_inbound, serialize_envelope

logger = logging.getLogger(__name__)

EventCallback = Callable[[DecodedEvent], Any]
StatusCallback = Callable[[ConnectionState], Any]
ErrorCallback = Callable[[ChatClientError], Any]
Connector = Callable[..., Awaitable[Any]]

# Failures that mean "the link is gone", never "the program is wrong".
TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, WebSocketException)


class ConnectionManager:
    """
    Manages the lifecycle of the realtime websocket connection.

    State machine:
        IDLE -> CONNECTING -> OPEN
        OPEN -> CLOSED_RETRYING            (any close while still wanted)
        CONNECTING -> CLOSED_RETRYING      (failure to establish)
        CLOSED_RETRYING -> CONNECTING      (after reconnect_delay)
        OPEN -> CLOSING -> IDLE            (shutdown only)

    Every connection attempt gets a new generation number. Completions that
    belong to an older generation are discarded, so a late socket from a
    superseded attempt can never overwrite the current one.

    All methods must be called from the event loop that owns the manager.
    Subscriber callbacks are invoked synchronously, in wire arrival order.
    """

    def __init__(
        self,
        url: str,
        reconnect_delay: float = 3.0,
        max_reconnect_attempts: Optional[int] = None,
        connect_timeout: Optional[float] = 10.0,
        ping_interval: Optional[float] = 30.0,
        connector: Optional[Connector] = None
    ):
        """
        Initialize the connection manager.

        Args:
            url: Realtime endpoint, e.g. ws://localhost:8000/ws/chat
            reconnect_delay: Seconds to wait after a close before retrying
            max_reconnect_attempts: Give up after this many consecutive retries (None = never)
            connect_timeout: Opening handshake timeout in seconds
            ping_interval: Keep-alive ping interval in seconds (None disables pings)
            connector: Coroutine function opening a websocket; defaults to websockets.connect
        """
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self.connect_timeout = connect_timeout
        self.ping_interval = ping_interval
        self._connector = connector or websockets.connect

        self._state = ConnectionState.IDLE
        self._websocket: Optional[Any] = None
        self._generation = 0
        self._reconnect_attempts = 0
        self._attempt_task: Optional[asyncio.Task] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None

        self._event_subscribers: List[EventCallback] = []
        self._status_subscribers: List[StatusCallback] = []
        self._error_subscribers: List[ErrorCallback] = []

    @classmethod
    def from_settings(cls, settings, connector: Optional[Connector] = None) -> "ConnectionManager":
        """Create a manager from ClientSettings."""
        return cls(
            url=settings.ws_url,
            reconnect_delay=settings.reconnect_delay,
            max_reconnect_attempts=settings.max_reconnect_attempts,
            connect_timeout=settings.connect_timeout,
            ping_interval=settings.ping_interval,
            connector=connector
        )

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == ConnectionState.OPEN

    @property
    def generation(self) -> int:
        """Generation number of the most recent connection attempt."""
        return self._generation

    # Subscriptions

    def on_event(self, callback: EventCallback) -> Callable[[], None]:
        """Subscribe to decoded inbound events. Returns an unsubscribe function."""
        return self._subscribe(self._event_subscribers, callback)

    def on_status_change(self, callback: StatusCallback) -> Callable[[], None]:
        """Subscribe to connection state transitions. Returns an unsubscribe function."""
        return self._subscribe(self._status_subscribers, callback)

    def on_error(self, callback: ErrorCallback) -> Callable[[], None]:
        """Subscribe to non-fatal transport and decode errors. Returns an unsubscribe function."""
        return self._subscribe(self._error_subscribers, callback)

    def _subscribe(self, subscribers: List[Callable], callback: Callable) -> Callable[[], None]:
        subscribers.append(callback)

        def unsubscribe():
            if callback in subscribers:
                subscribers.remove(callback)

        return unsubscribe

    def _notify(self, subscribers: List[Callable], value: Any):
        for callback in list(subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Subscriber {callback!r} failed: {e}", exc_info=True)

    # Lifecycle

    def connect(self):
        """
        Start connecting. No-op if already OPEN or CONNECTING.

        From IDLE this starts a fresh lifecycle. While CLOSED_RETRYING the
        pending retry timer is cancelled and a new attempt starts immediately.
        """
        if self._state in (ConnectionState.OPEN, ConnectionState.CONNECTING):
            logger.debug(f"connect() ignored, connection is {self._state.value}")
            return

        if self._state == ConnectionState.IDLE:
            self._reconnect_attempts = 0

        self._start_attempt()

    async def shutdown(self):
        """
        Close the connection for good. No automatic reconnect follows.

        A connection attempt still in flight is cancelled. connect() may be
        called again afterwards to start a fresh lifecycle.
        """
        self._cancel_retry()
        self._generation += 1
        generation = self._generation

        websocket, self._websocket = self._websocket, None
        attempt_task, self._attempt_task = self._attempt_task, None
        if attempt_task is asyncio.current_task():
            attempt_task = None

        if websocket is not None:
            self._set_state(ConnectionState.CLOSING)
            await self._close_quietly(websocket)
        elif attempt_task is not None and not attempt_task.done():
            logger.info(f"Cancelling connection attempt to {self.url}")
            attempt_task.cancel()

        if attempt_task is not None:
            await asyncio.gather(attempt_task, return_exceptions=True)

        if self._generation == generation:
            self._set_state(ConnectionState.IDLE)
            logger.info(f"Connection to {self.url} shut down")

    async def send(self, envelope: WireEnvelope) -> Optional[ErrorKind]:
        """
        Send an envelope over the open connection.

        Nothing is queued: when the connection is not OPEN the envelope is dropped.

        Returns:
            None if the envelope was transmitted, otherwise the ErrorKind
            (NOT_CONNECTED or TRANSPORT)
        """
        websocket = self._websocket
        if self._state != ConnectionState.OPEN or websocket is None:
            logger.warning("WebSocket is not connected, message not sent")
            return ErrorKind.NOT_CONNECTED

        message = serialize_envelope(envelope)
        try:
            await websocket.send(message)
        except TRANSPORT_ERRORS as e:
            logger.warning(f"Send failed on {self.url}: {e}")
            self._notify(self._error_subscribers, TransportError(f"Send failed: {e}"))
            return ErrorKind.TRANSPORT

        logger.debug(f"Sent message: {message}")
        return None

    # Internals

    def _set_state(self, state: ConnectionState):
        if state == self._state:
            return
        logger.info(f"Connection state: {self._state.value} -> {state.value}")
        self._state = state
        self._notify(self._status_subscribers, state)

    def _cancel_retry(self):
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _start_attempt(self):
        self._cancel_retry()

        # Only one attempt may be in flight; an older one is superseded.
        previous = self._attempt_task
        if previous is not None and not previous.done() and previous is not asyncio.current_task():
            previous.cancel()

        self._generation += 1
        generation = self._generation
        self._set_state(ConnectionState.CONNECTING)
        logger.info(f"Connecting to {self.url} (attempt {generation})")
        self._attempt_task = asyncio.get_running_loop().create_task(self._run_attempt(generation))

    async def _run_attempt(self, generation: int):
        try:
            websocket = await self._connector(
                self.url,
                open_timeout=self.connect_timeout,
                ping_interval=self.ping_interval
            )
        except TRANSPORT_ERRORS as e:
            if generation != self._generation:
                return
            logger.warning(f"Failed to connect to {self.url}: {e}")
            self._handle_close(generation, TransportError(f"Failed to connect: {e}"))
            return

        if generation != self._generation:
            logger.info(f"Discarding connection from superseded attempt {generation}")
            await self._close_quietly(websocket)
            return

        self._websocket = websocket
        self._reconnect_attempts = 0
        self._set_state(ConnectionState.OPEN)
        logger.info(f"WebSocket connected to: {self.url}")

        error = None
        try:
            async for raw in websocket:
                if generation != self._generation:
                    break
                self._dispatch(raw)
        except TRANSPORT_ERRORS as e:
            error = TransportError(f"Connection lost: {e}")

        if generation != self._generation:
            return

        self._websocket = None
        logger.info(f"WebSocket disconnected from: {self.url}")
        self._handle_close(generation, error)

    def _handle_close(self, generation: int, error: Optional[TransportError]):
        if error is not None:
            self._notify(self._error_subscribers, error)

        if self.max_reconnect_attempts is not None and self._reconnect_attempts >= self.max_reconnect_attempts:
            logger.error(f"Giving up on {self.url} after {self._reconnect_attempts} reconnect attempts")
            self._set_state(ConnectionState.IDLE)
            return

        self._reconnect_attempts += 1
        # Arm the timer before announcing the state so a subscriber calling
        # connect() cancels it instead of racing it.
        self._retry_handle = asyncio.get_running_loop().call_later(
            self.reconnect_delay, self._retry, generation
        )
        self._set_state(ConnectionState.CLOSED_RETRYING)
        logger.info(f"Reconnecting in {self.reconnect_delay:.1f}s")

    def _retry(self, generation: int):
        self._retry_handle = None
        if generation != self._generation or self._state != ConnectionState.CLOSED_RETRYING:
            return
        self._start_attempt()

    def _dispatch(self, raw: Any):
        result = decode_inbound(raw)
        if isinstance(result, DecodeError):
            logger.warning(f"Discarding inbound payload ({result.kind.value}): {result.message}")
            self._notify(self._error_subscribers, result)
            return
        self._notify(self._event_subscribers, result)

    async def _close_quietly(self, websocket: Any):
        try:
            await websocket.close()
        except TRANSPORT_ERRORS as e:
            logger.debug(f"Error while closing websocket: {e}")

"""Streaming transcription session.

One session drives one connection through the protocol:

    IDLE -> CONNECTING -> AWAITING_CONNECT -> STREAMING -> TERMINATING -> CLOSED

``CLOSED`` with ``error`` set is the failure variant, reachable from any
non-terminal state when the transport fails, times out, or is closed by the
server. There is no reconnection; a new session is needed to resume.

Frames arrive from the audio thread through ``send``, which only schedules
work on the event loop. A single sender task writes them in capture order, and
a receiver task turns inbound messages into events for the listener.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable
from enum import Enum

from speechstream.config import SessionConfig
from speechstream.constants import CLOSE_TIMEOUT_S, CONNECT_TIMEOUT_S, FRAME_QUEUE_SIZE, WRITE_TIMEOUT_S
from speechstream.errors import TransportError
from speechstream.events import Lifecycle, LifecycleKind, TranscriptEvent, TranscriptEventParser
from speechstream.frames import EncodedFrame
from speechstream.protocol import TERMINATE_MESSAGE, config_message, redacted
from speechstream.transport.protocol import Connector, Transport

logger = logging.getLogger(__name__)

EventListener = Callable[[TranscriptEvent], None]


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_CONNECT = "awaiting_connect"
    STREAMING = "streaming"
    TERMINATING = "terminating"
    CLOSED = "closed"


class TranscriptionSession:
    """Protocol state machine for one connection to the transcription service."""

    def __init__(
        self,
        connector: Connector,
        listener: EventListener | None = None,
        connect_timeout: float = CONNECT_TIMEOUT_S,
        write_timeout: float = WRITE_TIMEOUT_S,
        close_timeout: float = CLOSE_TIMEOUT_S,
        queue_size: int = FRAME_QUEUE_SIZE,
    ):
        """Initialize a session.

        Args:
            connector: Opens the transport on ``start``.
            listener: Receives transcript, error and lifecycle events on the
                event loop thread.
            connect_timeout: Seconds allowed for the connection handshake.
            write_timeout: Seconds allowed per outbound message.
            close_timeout: Seconds allowed for closing the transport.
            queue_size: Frames buffered between the audio thread and the sender.
        """
        self._connector = connector
        self._listener = listener
        self._connect_timeout = connect_timeout
        self._write_timeout = write_timeout
        self._close_timeout = close_timeout
        self._queue_size = queue_size

        self._state = SessionState.IDLE
        self._error: str | None = None
        self._config: SessionConfig | None = None
        self._transport: Transport | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[EncodedFrame] | None = None
        self._lock = asyncio.Lock()
        self._connect_task: asyncio.Task | None = None
        self._sender: asyncio.Task | None = None
        self._receiver: asyncio.Task | None = None
        self._parser = TranscriptEventParser()

        self.frames_sent = 0
        self._frames_dropped = 0
        self._drop_lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def error(self) -> str | None:
        """Why the session closed, if it closed because of a transport failure."""
        return self._error

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def frames_dropped(self) -> int:
        """Frames discarded instead of sent, counted from any thread."""
        with self._drop_lock:
            return self._frames_dropped

    @property
    def is_terminal(self) -> bool:
        return self._state is SessionState.CLOSED

    async def start(self, config: SessionConfig) -> None:
        """Connect, send the config message, and begin streaming.

        Returns normally without streaming if ``stop`` cancels the connect.

        Raises:
            TransportError: If the connection or the config write fails.
            RuntimeError: If the session was already started.
        """
        async with self._lock:
            if self._state is not SessionState.IDLE:
                raise RuntimeError(f"session already started (state: {self._state.value})")

            self._config = config
            self._loop = asyncio.get_running_loop()
            self._queue = asyncio.Queue(maxsize=self._queue_size)
            self._set_state(SessionState.CONNECTING)

            self._connect_task = asyncio.create_task(
                asyncio.wait_for(self._connector.connect(), timeout=self._connect_timeout),
                name="session-connect",
            )
            self._set_state(SessionState.AWAITING_CONNECT)
            # asyncio.wait does not raise when the task is cancelled by stop()
            try:
                await asyncio.wait({self._connect_task})
            except asyncio.CancelledError:
                self._connect_task.cancel()
                self._set_state(SessionState.CLOSED)
                raise
            task, self._connect_task = self._connect_task, None

            if task.cancelled():
                logger.info("Connect cancelled by stop")
                self._set_state(SessionState.CLOSED)
                return

            error = task.exception()
            if error is not None:
                if isinstance(error, asyncio.TimeoutError):
                    error = TransportError(f"connect timed out after {self._connect_timeout:.1f}s")
                elif not isinstance(error, TransportError):
                    error = TransportError(f"connect failed: {error}")
                self._close_with_error(str(error))
                raise error

            self._transport = task.result()
            await self._on_connected(config)

    async def _on_connected(self, config: SessionConfig) -> None:
        message = config.to_message()
        try:
            await self._write(config_message(config))
        except TransportError as e:
            await self._close_transport()
            self._close_with_error(str(e))
            raise
        logger.info(f"Sent configuration: {redacted(message)}")

        self._set_state(SessionState.STREAMING)
        self._sender = asyncio.create_task(self._send_loop(self._queue), name="session-send")
        self._receiver = asyncio.create_task(self._receive_loop(self._transport), name="session-recv")
        self._emit(Lifecycle(LifecycleKind.CONNECTED))

    def send(self, frame: EncodedFrame) -> bool:
        """Queue a frame for transmission. Thread-safe and non-blocking.

        Returns:
            False if the frame was dropped because the session is not streaming.
        """
        loop = self._loop
        if self._state is not SessionState.STREAMING or loop is None:
            logger.debug(f"Dropping frame, session is {self._state.value}")
            self._count_dropped()
            return False
        try:
            loop.call_soon_threadsafe(self._enqueue, frame)
        except RuntimeError:
            # Event loop already closed
            self._count_dropped()
            return False
        return True

    def _enqueue(self, frame: EncodedFrame) -> None:
        if self._state is not SessionState.STREAMING or self._queue is None:
            self._count_dropped()
            return
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            self._count_dropped()
            logger.warning("Frame queue full, dropping audio frame")

    def cancel_connect(self) -> None:
        """Abort an in-flight connect so a pending ``stop`` need not wait for it."""
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()

    async def stop(self) -> None:
        """Send the terminate message and close. Never raises.

        A no-op for sessions that never started or are already closed.
        """
        self.cancel_connect()
        async with self._lock:
            if self._state in (SessionState.IDLE, SessionState.CLOSED):
                return

            self._set_state(SessionState.TERMINATING)
            await self._cancel_tasks()
            self._discard_queued_frames()

            if self._transport is not None:
                try:
                    await self._write(TERMINATE_MESSAGE)
                except TransportError as e:
                    logger.warning(f"Could not send terminate message: {e}")
                await self._close_transport()

            self._set_state(SessionState.CLOSED)
            logger.info(f"Session closed ({self.frames_sent} frames sent, {self.frames_dropped} dropped)")
            self._emit(Lifecycle(LifecycleKind.DISCONNECTED))

    async def _send_loop(self, queue: asyncio.Queue) -> None:
        """Write queued frames in order while streaming."""
        while True:
            frame = await queue.get()
            if self._state is not SessionState.STREAMING:
                self._count_dropped()
                return
            try:
                await self._write(frame.message())
            except TransportError as e:
                await self._fail(e)
                return
            self.frames_sent += 1

    async def _receive_loop(self, transport: Transport) -> None:
        """Parse inbound messages and forward recognized events."""
        while True:
            try:
                message = await transport.recv()
            except TransportError as e:
                await self._fail(e)
                return
            event = self._parser.parse(message)
            if event is not None:
                self._emit(event)

    async def _write(self, message: str) -> None:
        transport = self._transport
        if transport is None:
            raise TransportError("not connected")
        try:
            await asyncio.wait_for(transport.send(message), timeout=self._write_timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"write timed out after {self._write_timeout:.1f}s") from e

    async def _fail(self, error: TransportError) -> None:
        """Move to CLOSED(error) after a transport failure."""
        if self._state in (SessionState.TERMINATING, SessionState.CLOSED):
            return
        logger.error(f"Transport error: {error}")
        self._close_with_error(str(error))
        await self._cancel_tasks()
        self._discard_queued_frames()
        await self._close_transport()
        self._emit(Lifecycle(LifecycleKind.DISCONNECTED, error=str(error)))

    def _count_dropped(self, count: int = 1) -> None:
        with self._drop_lock:
            self._frames_dropped += count

    def _close_with_error(self, error: str) -> None:
        self._error = error
        self._set_state(SessionState.CLOSED)

    async def _cancel_tasks(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in (self._sender, self._receiver) if task is not None and task is not current]
        self._sender = self._receiver = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _discard_queued_frames(self) -> None:
        if self._queue is None:
            return
        discarded = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            discarded += 1
        if discarded:
            self._count_dropped(discarded)
            logger.debug(f"Discarded {discarded} queued frames")

    async def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await asyncio.wait_for(transport.close(), timeout=self._close_timeout)
        except (TransportError, asyncio.TimeoutError) as e:
            logger.warning(f"Error closing transport: {e}")

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.debug(f"Session {self._state.value} -> {state.value}")
            self._state = state

    def _emit(self, event: TranscriptEvent) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event)
        except Exception:
            logger.exception(f"Event listener failed on {event!r}")

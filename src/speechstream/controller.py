"""Top-level listening controller.

Owns one AudioCaptureEngine and one TranscriptionSession at a time and
publishes the observable state (listening flag, live level, recognized text)
as immutable snapshots. All snapshot writes happen on the event loop thread;
level updates from the audio thread are marshalled with
``call_soon_threadsafe``.

Typical use:

    controller = SessionController.from_settings(Settings.from_env())
    controller.subscribe(lambda snap: print(snap.level, snap.recognized_text))
    await controller.start("punjabi")
    ...
    await controller.stop()
    final_text = controller.recognized_text
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial

from speechstream.audio import AudioBlock
from speechstream.capture.engine import AudioCaptureEngine
from speechstream.capture.protocol import StreamFactory
from speechstream.config import Language, Settings
from speechstream.constants import BLOCK_SIZE, LEVEL_FLOOR
from speechstream.errors import AudioError, StartError, TransportError
from speechstream.events import ErrorEvent, Lifecycle, LifecycleKind, Transcript, TranscriptEvent
from speechstream.frames import EncodedFrame
from speechstream.level import LevelMeter
from speechstream.session import SessionState, TranscriptionSession
from speechstream.transport.protocol import Connector
from speechstream.transport.websocket import WebSocketConnector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControllerSnapshot:
    """Observable state handed to the UI layer."""

    is_listening: bool = False
    level: float = LEVEL_FLOOR
    recognized_text: str = ""
    error: str | None = None


Subscriber = Callable[[ControllerSnapshot], None]


class SessionController:
    """Starts and stops listening sessions and publishes their output."""

    def __init__(
        self,
        settings: Settings,
        connector: Connector,
        stream_factory: StreamFactory | None = None,
        level_meter: LevelMeter | None = None,
        block_size: int = BLOCK_SIZE,
    ):
        """Initialize the controller.

        Args:
            settings: API key, device and vocabulary for new sessions.
            connector: Opens the transcription socket for each session.
            stream_factory: Microphone backend; defaults to PortAudio.
            level_meter: Meter used for the level output.
            block_size: Samples per capture block.
        """
        self._settings = settings
        self._connector = connector
        self._stream_factory = stream_factory
        self._level_meter = level_meter or LevelMeter()
        self._block_size = block_size

        self._capture: AudioCaptureEngine | None = None
        self._session: TranscriptionSession | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = asyncio.Lock()
        self._generation = 0
        self._snapshot = ControllerSnapshot()
        self._subscribers: list[Subscriber] = []

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "SessionController":
        """Controller wired to the real WebSocket endpoint."""
        connector = WebSocketConnector(
            settings.ws_url,
            headers=settings.auth_headers,
            open_timeout=settings.connect_timeout,
        )
        return cls(settings, connector, **kwargs)

    @property
    def snapshot(self) -> ControllerSnapshot:
        return self._snapshot

    @property
    def is_listening(self) -> bool:
        return self._snapshot.is_listening

    @property
    def level(self) -> float:
        return self._snapshot.level

    @property
    def recognized_text(self) -> str:
        return self._snapshot.recognized_text

    @property
    def session(self) -> TranscriptionSession | None:
        """The current session, if one was started and not yet torn down."""
        return self._session

    @property
    def capture(self) -> AudioCaptureEngine | None:
        return self._capture

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` with every new snapshot. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def start(self, language: str | Language) -> None:
        """Start listening in ``language``, replacing any running session.

        Raises:
            StartError: If the language is unknown, the microphone cannot be
                opened, or the service cannot be reached. Nothing is left
                running when this is raised.
        """
        try:
            language = Language.parse(language)
        except ValueError as e:
            raise StartError(str(e)) from e

        async with self._lock:
            await self._teardown()

            self._loop = asyncio.get_running_loop()
            self._generation += 1
            generation = self._generation
            config = self._settings.session_config(language)

            session = TranscriptionSession(
                self._connector,
                listener=partial(self._on_event, generation),
                connect_timeout=self._settings.connect_timeout,
                write_timeout=self._settings.write_timeout,
            )
            capture = AudioCaptureEngine(
                partial(self._on_block, generation, session),
                stream_factory=self._stream_factory,
                device=self._settings.device,
                level_meter=self._level_meter,
            )
            self._session, self._capture = session, capture
            self._publish(recognized_text="", level=self._level_meter.floor, error=None)

            logger.info(f"Starting session in {language.value}")
            try:
                capture.start(config.sample_rate, self._block_size)
            except AudioError as e:
                await self._teardown()
                self._publish(error=str(e))
                raise StartError(f"could not start audio capture: {e}") from e

            try:
                await session.start(config)
            except TransportError as e:
                await self._teardown()
                self._publish(error=str(e))
                raise StartError(f"could not connect to transcription service: {e}") from e

            if session.state is not SessionState.STREAMING:
                # stop() arrived while connecting
                await self._teardown()
                return

            self._publish(is_listening=True)

    async def stop(self) -> None:
        """Stop capture, then the session. Never raises; a no-op when idle."""
        if self._session is not None:
            self._session.cancel_connect()
        async with self._lock:
            await self._teardown()

    async def _teardown(self) -> None:
        capture, session = self._capture, self._session
        self._capture = self._session = None
        self._generation += 1

        # Capture first so no new frames are produced while terminating
        if capture is not None:
            capture.stop()
        if session is not None:
            await session.stop()

        if capture is not None or session is not None:
            self._publish(is_listening=False, level=self._level_meter.floor)

    def _on_block(
        self,
        generation: int,
        session: TranscriptionSession,
        block: AudioBlock,
        level: float,
        frame: EncodedFrame,
    ) -> None:
        """Audio thread: forward the frame and marshal the level to the loop."""
        session.send(frame)
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self._publish_level, generation, level)
        except RuntimeError:
            pass  # loop closed during shutdown

    def _publish_level(self, generation: int, level: float) -> None:
        if generation == self._generation:
            self._publish(level=level)

    def _on_event(self, generation: int, event: TranscriptEvent) -> None:
        """Event loop thread: apply session events from the current generation."""
        if generation != self._generation:
            return

        if isinstance(event, Transcript):
            if event.text != self._snapshot.recognized_text:
                self._publish(recognized_text=event.text)
        elif isinstance(event, ErrorEvent):
            logger.warning(f"Service error: {event.message}")
        elif isinstance(event, Lifecycle):
            if event.kind is LifecycleKind.DISCONNECTED and event.error is not None:
                self._on_transport_lost(event.error)

    def _on_transport_lost(self, error: str) -> None:
        logger.warning(f"Transcription stopped: {error}")
        self._generation += 1
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.stop()
        self._publish(is_listening=False, level=self._level_meter.floor, error=error)

    def _publish(self, **changes) -> None:
        snapshot = dataclasses.replace(self._snapshot, **changes)
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Snapshot subscriber failed")

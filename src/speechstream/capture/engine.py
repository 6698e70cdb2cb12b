"""Microphone capture engine.

Owns the input stream. Each hardware callback turns the raw block into an
AudioBlock, measures its level, encodes its wire frame, and hands all three
to the sink. The callback never touches the network; the sink is expected to
return immediately (see ``TranscriptionSession.send``).
"""

import logging
import time
from collections.abc import Callable

import numpy as np

from speechstream.audio import AudioBlock
from speechstream.capture.protocol import InputStream, StreamFactory
from speechstream.constants import BLOCK_SIZE, SAMPLE_RATE
from speechstream.errors import AudioError, DeviceUnavailableError, UnsupportedFormatError
from speechstream.frames import EncodedFrame, encode_frame
from speechstream.level import LevelMeter

logger = logging.getLogger(__name__)

BlockSink = Callable[[AudioBlock, float, EncodedFrame], None]


def _portaudio_factory() -> StreamFactory:
    try:
        from speechstream.capture import portaudio
    except OSError as e:
        # sounddevice raises OSError when the PortAudio library is missing
        raise DeviceUnavailableError(f"PortAudio is not available: {e}") from e
    return portaudio.open_input_stream


class AudioCaptureEngine:
    """Streams microphone blocks to a sink while running."""

    def __init__(
        self,
        sink: BlockSink,
        stream_factory: StreamFactory | None = None,
        device: int | None = None,
        level_meter: LevelMeter | None = None,
    ):
        """Initialize the capture engine.

        Args:
            sink: Called from the audio thread with (block, level, frame).
            stream_factory: Input backend; defaults to PortAudio.
            device: Input device index, or None for the system default.
            level_meter: Meter used for the level output.
        """
        self._sink = sink
        self._stream_factory = stream_factory
        self._device = device
        self._level_meter = level_meter or LevelMeter()
        self._stream: InputStream | None = None
        self._running = False
        self._sample_rate = SAMPLE_RATE
        self._blocks_captured = 0

    @property
    def running(self) -> bool:
        """Whether the stream is open and delivering blocks."""
        return self._running

    @property
    def blocks_captured(self) -> int:
        """Number of blocks forwarded to the sink since construction."""
        return self._blocks_captured

    def start(self, sample_rate: int = SAMPLE_RATE, block_size: int = BLOCK_SIZE) -> None:
        """Open and start the input stream.

        A running engine is stopped first.

        Raises:
            UnsupportedFormatError: If the format is invalid or rejected by the device.
            DeviceUnavailableError: If no device can be opened or activated.
            PermissionDeniedError: If microphone access is refused.
        """
        if self._running or self._stream is not None:
            self.stop()

        if sample_rate <= 0 or block_size <= 0:
            raise UnsupportedFormatError(
                f"sample_rate and block_size must be positive, got {sample_rate} and {block_size}"
            )

        factory = self._stream_factory or _portaudio_factory()
        self._sample_rate = sample_rate
        stream = factory(self._device, sample_rate, block_size, self._callback)

        # Flag first so the very first callback is not discarded
        self._running = True
        try:
            stream.start()
        except AudioError:
            self._running = False
            self._close_quietly(stream)
            raise

        self._stream = stream
        logger.info(f"Audio capture started ({sample_rate} Hz, {block_size} samples per block)")

    def stop(self) -> None:
        """Stop and release the stream. Safe to call at any time, any number of times."""
        was_running = self._running
        self._running = False
        stream, self._stream = self._stream, None
        if stream is None:
            return

        try:
            stream.stop()
        except AudioError as e:
            logger.warning(f"Error stopping input stream: {e}")
        self._close_quietly(stream)

        if was_running:
            logger.info(f"Audio capture stopped after {self._blocks_captured} blocks")

    @staticmethod
    def _close_quietly(stream: InputStream) -> None:
        try:
            stream.close()
        except AudioError as e:
            logger.warning(f"Error closing input stream: {e}")

    def _callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        """Audio thread entry point; bounded work, never raises."""
        try:
            if status:
                logger.debug(f"Audio status: {status}")
            if not self._running:
                return

            samples = indata[:, 0] if indata.ndim > 1 else indata.reshape(-1)
            timestamp = getattr(time_info, "inputBufferAdcTime", None) or time.monotonic()
            block = AudioBlock(samples, self._sample_rate, timestamp)

            level = self._level_meter.measure(block)
            frame = encode_frame(block)
            self._blocks_captured += 1
            self._sink(block, level, frame)
        except Exception:
            logger.exception("Audio callback error")

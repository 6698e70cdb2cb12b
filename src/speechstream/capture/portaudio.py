"""PortAudio input backend via sounddevice.

Importing this module loads the PortAudio shared library, so it is only
imported when a real microphone stream is requested.
"""

import logging

import sounddevice as sd

from speechstream.capture.protocol import AudioCallback
from speechstream.constants import CHANNELS, SAMPLE_DTYPE
from speechstream.errors import (
    AudioError,
    DeviceUnavailableError,
    PermissionDeniedError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)

_FORMAT_HINTS = ("sample rate", "samplerate", "sample format", "channel count", "invalid number of channels")
_PERMISSION_HINTS = ("permission", "not permitted", "access denied")


def translate_error(error: Exception) -> AudioError:
    """Map a sounddevice/PortAudio failure onto the AudioError taxonomy."""
    text = str(error).lower()
    if any(hint in text for hint in _PERMISSION_HINTS):
        return PermissionDeniedError(str(error))
    if any(hint in text for hint in _FORMAT_HINTS):
        return UnsupportedFormatError(str(error))
    return DeviceUnavailableError(str(error))


class PortAudioInputStream:
    """``sd.InputStream`` wrapper that raises AudioError instead of PortAudioError."""

    def __init__(self, stream: sd.InputStream):
        self._stream = stream

    def start(self) -> None:
        try:
            self._stream.start()
        except sd.PortAudioError as e:
            raise translate_error(e) from e

    def stop(self) -> None:
        try:
            self._stream.stop()
        except sd.PortAudioError as e:
            raise translate_error(e) from e

    def close(self) -> None:
        try:
            self._stream.close()
        except sd.PortAudioError as e:
            raise translate_error(e) from e


def open_input_stream(
    device: int | None,
    sample_rate: int,
    block_size: int,
    callback: AudioCallback,
) -> PortAudioInputStream:
    """Open an int16 mono input stream on ``device`` (None for the default)."""
    try:
        sd.check_input_settings(
            device=device,
            channels=CHANNELS,
            dtype=SAMPLE_DTYPE,
            samplerate=sample_rate,
        )
    except ValueError as e:
        # sounddevice raises ValueError for unknown devices
        raise DeviceUnavailableError(str(e)) from e
    except sd.PortAudioError as e:
        raise translate_error(e) from e

    try:
        stream = sd.InputStream(
            device=device,
            samplerate=sample_rate,
            channels=CHANNELS,
            dtype=SAMPLE_DTYPE,
            blocksize=block_size,
            callback=callback,
        )
    except sd.PortAudioError as e:
        raise translate_error(e) from e

    logger.info(f"Opened input stream (device: {device if device is not None else 'default'}, {sample_rate} Hz)")
    return PortAudioInputStream(stream)


def list_input_devices() -> list[tuple[int, str, bool]]:
    """Return ``(index, name, is_default)`` for every device with input channels."""
    try:
        devices = sd.query_devices()
        default_input = sd.default.device[0]
    except sd.PortAudioError as e:
        raise translate_error(e) from e

    return [
        (i, device["name"], i == default_input)
        for i, device in enumerate(devices)
        if device["max_input_channels"] > 0
    ]

"""Real-time microphone streaming client for live transcription."""

from speechstream.config import Language, SessionConfig, Settings
from speechstream.constants import BLOCK_SIZE, DEFAULT_WS_URL, SAMPLE_RATE
from speechstream.controller import ControllerSnapshot, SessionController
from speechstream.errors import (
    AudioError,
    ConfigurationError,
    DeviceUnavailableError,
    ParseError,
    PermissionDeniedError,
    SpeechStreamError,
    StartError,
    TransportError,
    UnsupportedFormatError,
)
from speechstream.session import SessionState, TranscriptionSession

__all__ = [
    "SAMPLE_RATE",
    "BLOCK_SIZE",
    "DEFAULT_WS_URL",
    "Language",
    "SessionConfig",
    "Settings",
    "SessionController",
    "ControllerSnapshot",
    "TranscriptionSession",
    "SessionState",
    "SpeechStreamError",
    "ConfigurationError",
    "AudioError",
    "DeviceUnavailableError",
    "UnsupportedFormatError",
    "PermissionDeniedError",
    "TransportError",
    "ParseError",
    "StartError",
]

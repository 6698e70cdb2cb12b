"""Session and client configuration.

``SessionConfig`` is the immutable per-session payload sent as the first
message on every connection. ``Settings`` carries the client-wide values
(API key, endpoint, device) and is normally built from the environment:

    SPEECHSTREAM_API_KEY     - service API key (required)
    SPEECHSTREAM_WS_URL      - WebSocket endpoint override
    SPEECHSTREAM_DEVICE      - input device index
    SPEECHSTREAM_VOCABULARY  - comma separated transcription hints
"""

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from speechstream.constants import (
    API_KEY_HEADER,
    CONNECT_TIMEOUT_S,
    DEFAULT_VOCABULARY,
    DEFAULT_WS_URL,
    ENCODING,
    ENDPOINTING_MS,
    FRAMES_FORMAT,
    LANGUAGE_BEHAVIOUR,
    MODEL_TYPE,
    SAMPLE_RATE,
    WRITE_TIMEOUT_S,
)
from speechstream.errors import ConfigurationError


class Language(str, Enum):
    """Languages the user can pick.

    Punjabi sessions are configured upstream with the "urdu" tag; see
    ``wire_tag``.
    """

    ENGLISH = "english"
    PUNJABI = "punjabi"

    @property
    def wire_tag(self) -> str:
        """Language tag sent in the config message."""
        return _WIRE_TAGS[self]

    @classmethod
    def parse(cls, tag: "str | Language") -> "Language":
        """Resolve a language tag case-insensitively.

        Raises:
            ValueError: If the tag names no supported language.
        """
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).strip().lower())
        except ValueError:
            supported = ", ".join(language.value for language in cls)
            raise ValueError(f"unsupported language {tag!r} (expected one of: {supported})") from None


_WIRE_TAGS = {
    Language.ENGLISH: "english",
    Language.PUNJABI: "urdu",
}


def _unique(words: Iterable[str]) -> tuple[str, ...]:
    """Strip, drop empties and de-duplicate while keeping order."""
    seen: dict[str, None] = {}
    for word in words:
        word = word.strip()
        if word:
            seen.setdefault(word, None)
    return tuple(seen)


@dataclass(frozen=True)
class SessionConfig:
    """Recognizer settings for one streaming session."""

    api_key: str = field(repr=False)
    language: Language = Language.ENGLISH
    sample_rate: int = SAMPLE_RATE
    encoding: str = ENCODING
    vocabulary: tuple[str, ...] = DEFAULT_VOCABULARY
    model_type: str = MODEL_TYPE
    audio_enhancer: bool = True
    endpointing_ms: int = ENDPOINTING_MS
    language_behaviour: str = LANGUAGE_BEHAVIOUR
    frames_format: str = FRAMES_FORMAT

    def __post_init__(self):
        object.__setattr__(self, "language", Language.parse(self.language))
        object.__setattr__(self, "vocabulary", _unique(self.vocabulary))
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.endpointing_ms < 0:
            raise ValueError(f"endpointing_ms must not be negative, got {self.endpointing_ms}")

    @property
    def transcription_hint(self) -> str:
        return ",".join(self.vocabulary)

    def to_message(self) -> dict[str, Any]:
        """The config payload, in the field order the service documents."""
        return {
            "x_api_key": self.api_key,
            "encoding": self.encoding,
            "sample_rate": self.sample_rate,
            "language_behaviour": self.language_behaviour,
            "language": self.language.wire_tag,
            "frames_format": self.frames_format,
            "model_type": self.model_type,
            "audio_enhancer": self.audio_enhancer,
            "endpointing": self.endpointing_ms,
            "transcription_hint": self.transcription_hint,
        }


@dataclass(frozen=True)
class Settings:
    """Client-wide settings, injected at construction time."""

    api_key: str = field(repr=False)
    ws_url: str = DEFAULT_WS_URL
    device: int | None = None
    vocabulary: tuple[str, ...] = DEFAULT_VOCABULARY
    connect_timeout: float = CONNECT_TIMEOUT_S
    write_timeout: float = WRITE_TIMEOUT_S

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "Settings":
        """Build settings from environment variables.

        Keyword overrides that are not None win over the environment.

        Raises:
            ConfigurationError: If no API key is available or a value is malformed.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            "api_key": env.get("SPEECHSTREAM_API_KEY", ""),
            "ws_url": env.get("SPEECHSTREAM_WS_URL") or DEFAULT_WS_URL,
        }

        device = env.get("SPEECHSTREAM_DEVICE")
        if device:
            try:
                values["device"] = int(device)
            except ValueError:
                raise ConfigurationError(f"SPEECHSTREAM_DEVICE must be an integer, got {device!r}") from None

        vocabulary = env.get("SPEECHSTREAM_VOCABULARY")
        if vocabulary:
            values["vocabulary"] = _unique(vocabulary.split(","))

        values.update({key: value for key, value in overrides.items() if value is not None})
        if not values["api_key"]:
            raise ConfigurationError("SPEECHSTREAM_API_KEY is not set")
        return cls(**values)

    @property
    def auth_headers(self) -> dict[str, str]:
        """Handshake headers carrying the API key."""
        return {API_KEY_HEADER: self.api_key}

    def session_config(self, language: "str | Language") -> SessionConfig:
        """Build the SessionConfig for one session in ``language``."""
        return SessionConfig(
            api_key=self.api_key,
            language=Language.parse(language),
            vocabulary=self.vocabulary,
        )

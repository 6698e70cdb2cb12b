"""Typed events decoded from the transcription service.

Inbound messages are JSON objects discriminated by their ``event`` field.
Only ``transcript`` and ``error`` are surfaced; everything else is dropped so
a noisy stream cannot destabilize the session.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum

from speechstream.errors import ParseError

logger = logging.getLogger(__name__)


class LifecycleKind(Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class Transcript:
    """Recognized text for the current utterance."""

    text: str
    is_final: bool = False


@dataclass(frozen=True)
class ErrorEvent:
    """An error reported in-band by the service."""

    message: str


@dataclass(frozen=True)
class Lifecycle:
    """Connection state change, produced by the session itself.

    ``error`` is set when the connection ended because of a transport failure.
    """

    kind: LifecycleKind
    error: str | None = None


TranscriptEvent = Transcript | ErrorEvent | Lifecycle


def decode_event(raw: str | bytes) -> TranscriptEvent | None:
    """Decode one inbound message.

    Returns:
        The event, or None for well-formed messages with an unrecognized
        ``event`` discriminator.

    Raises:
        ParseError: If the message is not a JSON object or a recognized
            event lacks its payload.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"message is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"message is not a JSON object: {type(data).__name__}")

    event = data.get("event")
    if event == "transcript":
        text = data.get("transcription")
        if not isinstance(text, str):
            raise ParseError("transcript event has no 'transcription' string")
        return Transcript(text, is_final=data.get("type") == "final")

    if event == "error":
        message = data.get("message") or data.get("error")
        if not isinstance(message, str):
            raise ParseError("error event has no 'message' string")
        return ErrorEvent(message)

    return None


class TranscriptEventParser:
    """Lenient front end to ``decode_event``.

    Parse failures are logged and counted, never raised.
    """

    def __init__(self):
        self.parsed = 0
        self.ignored = 0
        self.malformed = 0

    def parse(self, raw: str | bytes) -> TranscriptEvent | None:
        try:
            event = decode_event(raw)
        except ParseError as e:
            self.malformed += 1
            logger.warning(f"Dropping malformed message: {e}")
            return None

        if event is None:
            self.ignored += 1
            logger.debug(f"Ignoring message: {raw!r:.200}")
            return None

        self.parsed += 1
        return event

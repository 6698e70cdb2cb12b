"""Wire frames for captured audio.

A frame is the base64 text of a block's raw PCM16 bytes, wrapped in the
``{"frames": ...}`` envelope the transcription service expects.
"""

import base64
import binascii
import json
from dataclasses import dataclass

from speechstream.audio import AudioBlock
from speechstream.constants import SAMPLE_RATE
from speechstream.errors import ParseError


@dataclass(frozen=True)
class EncodedFrame:
    """Base64 payload of one AudioBlock plus the metadata to rebuild it."""

    payload: str
    sample_count: int
    sample_rate: int = SAMPLE_RATE
    timestamp: float = 0.0

    def message(self) -> str:
        """The JSON text frame sent on the socket."""
        return json.dumps({"frames": self.payload})


def encode_frame(block: AudioBlock) -> EncodedFrame:
    """Encode a block for transmission. Total and deterministic."""
    payload = base64.b64encode(block.to_bytes()).decode("ascii")
    return EncodedFrame(payload, len(block), block.sample_rate, block.timestamp)


def decode_frame(frame: EncodedFrame) -> AudioBlock:
    """Rebuild the AudioBlock an EncodedFrame was made from."""
    data = base64.b64decode(frame.payload, validate=True)
    return AudioBlock.from_bytes(data, frame.sample_rate, frame.timestamp)


def decode_frame_message(text: str | bytes) -> bytes:
    """Extract the raw PCM16 bytes from a ``{"frames": ...}`` message.

    Raises:
        ParseError: If the message is not a well-formed frame envelope.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"frame is not JSON: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("frames"), str):
        raise ParseError("frame has no 'frames' string")
    try:
        return base64.b64decode(data["frames"], validate=True)
    except binascii.Error as e:
        raise ParseError(f"frame payload is not base64: {e}") from e

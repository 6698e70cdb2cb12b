"""Outbound control messages for the streaming protocol.

Order on the wire for one session:

    1. config message, exactly once, right after connect
    2. zero or more ``{"frames": ...}`` messages (see ``speechstream.frames``)
    3. ``{"event": "terminate"}``, exactly once, before close
"""

import json
from typing import Any

from speechstream.config import SessionConfig

TERMINATE_MESSAGE: str = json.dumps({"event": "terminate"})


def config_message(config: SessionConfig) -> str:
    """Serialize the session config as the first text frame."""
    return json.dumps(config.to_message(), ensure_ascii=False)


def redacted(message: dict[str, Any]) -> dict[str, Any]:
    """Copy of a config payload safe to log."""
    return {key: ("***" if key == "x_api_key" else value) for key, value in message.items()}


def message_kind(text: str | bytes) -> str:
    """Classify an outbound message as config, frame, terminate or unknown."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return "unknown"
    if not isinstance(data, dict):
        return "unknown"
    if "frames" in data:
        return "frame"
    if data.get("event") == "terminate":
        return "terminate"
    if "x_api_key" in data:
        return "config"
    return "unknown"

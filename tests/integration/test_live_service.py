"""Integration tests against the live transcription service.

These tests open real WebSocket connections and are skipped unless an API key
is configured.

Run against the hosted service:
    SPEECHSTREAM_API_KEY=... pytest tests/integration/test_live_service.py -v

Run against another endpoint:
    SPEECHSTREAM_WS_URL=wss://... SPEECHSTREAM_API_KEY=... pytest tests/integration -v
"""

import asyncio
import json
import os

import numpy as np
import pytest
import websockets

from speechstream.audio import AudioBlock
from speechstream.config import Settings
from speechstream.constants import SAMPLE_RATE
from speechstream.frames import encode_frame
from speechstream.protocol import TERMINATE_MESSAGE, config_message
from speechstream.session import SessionState, TranscriptionSession
from speechstream.transport.websocket import WebSocketConnector

pytestmark = pytest.mark.skipif(
    not os.environ.get("SPEECHSTREAM_API_KEY"),
    reason="SPEECHSTREAM_API_KEY not set",
)


def create_pcm_blocks(duration_seconds: float = 1.0, block_size: int = 1024) -> list[AudioBlock]:
    """Low-level noise split into capture-sized blocks."""
    rng = np.random.default_rng(0)
    samples = (rng.standard_normal(int(SAMPLE_RATE * duration_seconds)) * 200).astype(np.int16)
    return [AudioBlock(samples[i : i + block_size]) for i in range(0, len(samples), block_size)]


@pytest.fixture
def settings():
    return Settings.from_env()


class TestHandshake:
    """Tests for the raw wire protocol."""

    @pytest.mark.asyncio
    @pytest.mark.timeout(30)
    async def test_config_accepted(self, settings):
        """The service keeps the connection open after a valid config."""
        config = settings.session_config("english")

        async with websockets.connect(settings.ws_url, additional_headers=settings.auth_headers) as ws:
            await ws.send(config_message(config))
            for block in create_pcm_blocks(0.5):
                await ws.send(encode_frame(block).message())
            await ws.send(TERMINATE_MESSAGE)

            # Whatever arrives must be JSON objects
            try:
                while True:
                    message = await asyncio.wait_for(ws.recv(), timeout=5.0)
                    assert isinstance(json.loads(message), dict)
            except (asyncio.TimeoutError, websockets.ConnectionClosed):
                pass

    @pytest.mark.asyncio
    @pytest.mark.timeout(30)
    async def test_invalid_key_rejected(self, settings):
        """A bad key ends the connection instead of streaming."""
        bad = Settings(api_key="invalid-key", ws_url=settings.ws_url)
        config = bad.session_config("english")

        with pytest.raises((websockets.ConnectionClosed, websockets.InvalidStatus, asyncio.TimeoutError)):
            async with websockets.connect(bad.ws_url, additional_headers=bad.auth_headers) as ws:
                await ws.send(config_message(config))
                while True:
                    await asyncio.wait_for(ws.recv(), timeout=10.0)


class TestSession:
    """Tests for TranscriptionSession over a real socket."""

    @pytest.mark.asyncio
    @pytest.mark.timeout(60)
    async def test_stream_and_terminate(self, settings):
        connector = WebSocketConnector(settings.ws_url, headers=settings.auth_headers)
        events = []
        session = TranscriptionSession(connector, listener=events.append)

        await session.start(settings.session_config("punjabi"))
        assert session.state is SessionState.STREAMING

        for block in create_pcm_blocks(2.0):
            session.send(encode_frame(block))
            await asyncio.sleep(block.duration_s)

        await session.stop()
        assert session.state is SessionState.CLOSED
        assert session.error is None
        assert session.frames_sent > 0

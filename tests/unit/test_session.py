"""Unit tests for the transcription session state machine with FakeConnector."""

import asyncio
import json
import threading
import time

import numpy as np
import pytest

from speechstream.audio import AudioBlock
from speechstream.config import SessionConfig
from speechstream.errors import TransportError
from speechstream.events import ErrorEvent, Lifecycle, LifecycleKind, Transcript
from speechstream.frames import decode_frame_message, encode_frame
from speechstream.protocol import TERMINATE_MESSAGE
from speechstream.session import SessionState, TranscriptionSession
from speechstream.transport.fake import FakeConnector


def make_frame(value: int = 0, samples: int = 4):
    return encode_frame(AudioBlock(np.full(samples, value, dtype=np.int16)))


async def settle(rounds: int = 50) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def config():
    return SessionConfig(api_key="test-key", language="punjabi", vocabulary=("ਮੈਂ",))


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def events():
    return []


@pytest.fixture
def session(connector, events):
    return TranscriptionSession(connector, listener=events.append)


class TestStart:
    """Tests for connect and configure."""

    def test_initial_state(self, session):
        assert session.state is SessionState.IDLE
        assert session.error is None

    @pytest.mark.asyncio
    async def test_start_streams_and_sends_config(self, session, connector, config, events):
        await session.start(config)

        assert session.state is SessionState.STREAMING
        transport = connector.current
        assert transport.kinds == ["config"]
        assert json.loads(transport.sent[0]) == config.to_message()
        assert events == [Lifecycle(LifecycleKind.CONNECTED)]
        await session.stop()

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, session, config):
        await session.start(config)
        with pytest.raises(RuntimeError):
            await session.start(config)
        await session.stop()

    @pytest.mark.asyncio
    async def test_connect_failure(self, events, config):
        connector = FakeConnector(fail_with=TransportError("connection refused"))
        session = TranscriptionSession(connector, listener=events.append)

        with pytest.raises(TransportError, match="refused"):
            await session.start(config)

        assert session.state is SessionState.CLOSED
        assert session.error == "connection refused"
        assert events == []

    @pytest.mark.asyncio
    async def test_connect_timeout(self, config):
        """A connect that exceeds the timeout is a transport error."""
        connector = FakeConnector(connect_delay=5.0)
        session = TranscriptionSession(connector, connect_timeout=0.05)

        with pytest.raises(TransportError, match="timed out"):
            await session.start(config)

        assert session.state is SessionState.CLOSED
        assert connector.transports == []

    @pytest.mark.asyncio
    async def test_config_write_failure(self, config):
        """Failing to send the config closes the session and the transport."""

        class FailingConnector(FakeConnector):
            async def connect(self):
                transport = await super().connect()
                transport.fail_writes = TransportError("broken pipe")
                return transport

        connector = FailingConnector()
        session = TranscriptionSession(connector)

        with pytest.raises(TransportError):
            await session.start(config)

        assert session.state is SessionState.CLOSED
        assert connector.active == 0


class TestSend:
    """Tests for frame transmission."""

    @pytest.mark.asyncio
    async def test_send_before_start_is_dropped(self, session):
        assert session.send(make_frame()) is False
        assert session.frames_dropped == 1

    def test_drops_counted_across_threads(self, session):
        """Concurrent senders on several audio threads lose no drop counts."""
        frame = make_frame()

        def spam():
            for _ in range(2000):
                session.send(frame)

        threads = [threading.Thread(target=spam) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert session.frames_dropped == 8000

    @pytest.mark.asyncio
    async def test_frames_follow_config(self, session, connector, config):
        """No frame is ever sent before the config message."""
        await session.start(config)
        for i in range(3):
            assert session.send(make_frame(i))
        await settle()

        transport = connector.current
        assert transport.kinds == ["config", "frame", "frame", "frame"]
        assert session.frames_sent == 3
        await session.stop()

    @pytest.mark.asyncio
    async def test_frames_written_in_order(self, session, connector, config):
        await session.start(config)
        for i in range(20):
            session.send(make_frame(i))
        await settle(200)

        payloads = [decode_frame_message(m) for m in connector.current.messages("frame")]
        values = [int(np.frombuffer(p, dtype=np.int16)[0]) for p in payloads]
        assert values == list(range(20))
        await session.stop()

    @pytest.mark.asyncio
    async def test_send_from_another_thread(self, session, connector, config):
        """Frames handed off from an audio thread reach the socket."""
        await session.start(config)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, session.send, make_frame(9))
        await settle()

        assert len(connector.current.messages("frame")) == 1
        await session.stop()

    @pytest.mark.asyncio
    async def test_full_queue_drops_frames(self, connector, config):
        session = TranscriptionSession(connector, queue_size=1)
        await session.start(config)
        for i in range(5):
            session.send(make_frame(i))
        await settle()

        assert session.frames_dropped >= 1
        assert session.frames_sent + session.frames_dropped == 5
        await session.stop()


class TestStop:
    """Tests for termination."""

    @pytest.mark.asyncio
    async def test_stop_from_idle_is_noop(self, session, events):
        await session.stop()
        assert session.state is SessionState.IDLE
        assert events == []

    @pytest.mark.asyncio
    async def test_start_then_stop(self, session, connector, config, events):
        """Immediate stop sends one config, one terminate, and no frames."""
        await session.start(config)
        await session.stop()

        transport = connector.current
        assert transport.kinds == ["config", "terminate"]
        assert transport.closed
        assert session.state is SessionState.CLOSED
        assert session.error is None
        assert session.is_terminal
        assert events[-1] == Lifecycle(LifecycleKind.DISCONNECTED)

    @pytest.mark.asyncio
    async def test_stop_twice(self, session, connector, config):
        await session.start(config)
        await session.stop()
        await session.stop()
        assert connector.current.kinds == ["config", "terminate"]

    @pytest.mark.asyncio
    async def test_no_frames_after_stop(self, session, connector, config):
        await session.start(config)
        session.send(make_frame(1))
        await settle()
        await session.stop()

        assert session.send(make_frame(2)) is False
        await settle()
        assert connector.current.kinds == ["config", "frame", "terminate"]

    @pytest.mark.asyncio
    @pytest.mark.timeout(5)
    async def test_stop_cancels_pending_connect(self, config):
        """stop() during a slow connect returns promptly and leaves no socket."""
        connector = FakeConnector(connect_delay=5.0)
        session = TranscriptionSession(connector, connect_timeout=10.0)

        started = time.monotonic()
        start_task = asyncio.create_task(session.start(config))
        await settle()
        assert session.state is SessionState.AWAITING_CONNECT

        await session.stop()
        await start_task

        assert time.monotonic() - started < 1.0
        assert session.state is SessionState.CLOSED
        assert connector.transports == []

    @pytest.mark.asyncio
    async def test_stop_tolerates_failed_terminate(self, session, connector, config):
        await session.start(config)
        connector.current.fail_writes = TransportError("broken pipe")
        await session.stop()
        assert session.state is SessionState.CLOSED
        assert connector.active == 0

    @pytest.mark.asyncio
    async def test_write_after_close_is_transport_error(self, session, config):
        """Writing on a closed session fails with TransportError, not an assertion."""
        await session.start(config)
        await session.stop()
        with pytest.raises(TransportError, match="not connected"):
            await session._write(TERMINATE_MESSAGE)

    def test_timeout_marker_from_plugin(self, pytestconfig):
        assert pytestconfig.pluginmanager.hasplugin("timeout")


class TestInbound:
    """Tests for inbound message handling."""

    @pytest.mark.asyncio
    async def test_transcript_forwarded(self, session, connector, config, events):
        await session.start(config)
        connector.current.push({"event": "transcript", "transcription": "ਸਤ ਸ੍ਰੀ ਅਕਾਲ"})
        await settle()

        assert Transcript("ਸਤ ਸ੍ਰੀ ਅਕਾਲ") in events
        await session.stop()

    @pytest.mark.asyncio
    async def test_malformed_message_ignored(self, session, connector, config, events):
        await session.start(config)
        connector.current.push("not json")
        connector.current.push({"event": "unknown"})
        await settle()

        assert session.state is SessionState.STREAMING
        assert events == [Lifecycle(LifecycleKind.CONNECTED)]
        await session.stop()

    @pytest.mark.asyncio
    async def test_error_event_keeps_streaming(self, session, connector, config, events):
        await session.start(config)
        connector.current.push({"event": "error", "message": "audio too quiet"})
        await settle()

        assert ErrorEvent("audio too quiet") in events
        assert session.state is SessionState.STREAMING
        await session.stop()

    @pytest.mark.asyncio
    async def test_listener_error_does_not_break_session(self, connector, config):
        def broken(event):
            raise RuntimeError("listener bug")

        session = TranscriptionSession(connector, listener=broken)
        await session.start(config)
        connector.current.push({"event": "transcript", "transcription": "x"})
        await settle()
        assert session.state is SessionState.STREAMING
        await session.stop()


class TestTransportFailure:
    """Tests for unexpected close and write errors."""

    @pytest.mark.asyncio
    async def test_unexpected_close(self, session, connector, config, events):
        await session.start(config)
        connector.current.drop("connection closed by server (code 1006: abnormal)")
        await settle()

        assert session.state is SessionState.CLOSED
        assert "1006" in session.error
        assert events[-1].kind is LifecycleKind.DISCONNECTED
        assert events[-1].error == session.error
        assert connector.active == 0

    @pytest.mark.asyncio
    async def test_stop_after_failure_sends_nothing(self, session, connector, config):
        """No reconnection and no terminate on a dead transport."""
        await session.start(config)
        connector.current.drop()
        await settle()
        await session.stop()

        assert connector.current.kinds == ["config"]
        assert connector.attempts == 1

    @pytest.mark.asyncio
    async def test_write_failure_closes_session(self, session, connector, config, events):
        await session.start(config)
        connector.current.fail_writes = TransportError("broken pipe")
        session.send(make_frame())
        await settle()

        assert session.state is SessionState.CLOSED
        assert session.error == "broken pipe"
        assert events[-1] == Lifecycle(LifecycleKind.DISCONNECTED, error="broken pipe")

    @pytest.mark.asyncio
    async def test_write_timeout_closes_session(self, connector, config):
        session = TranscriptionSession(connector, write_timeout=0.05)
        await session.start(config)
        connector.current.write_delay = 1.0
        session.send(make_frame())
        await asyncio.sleep(0.2)

        assert session.state is SessionState.CLOSED
        assert "timed out" in session.error

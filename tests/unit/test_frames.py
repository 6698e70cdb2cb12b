"""Unit tests for wire frame encoding."""

import base64
import json

import numpy as np
import pytest

from speechstream.audio import AudioBlock
from speechstream.errors import ParseError
from speechstream.frames import EncodedFrame, decode_frame, decode_frame_message, encode_frame


class TestEncodeFrame:
    """Tests for encode_frame / decode_frame."""

    def test_payload_is_base64_of_raw_pcm(self):
        block = AudioBlock(np.array([1, -1, 256], dtype=np.int16))
        frame = encode_frame(block)
        assert base64.b64decode(frame.payload) == block.to_bytes()
        assert frame.sample_count == 3

    def test_metadata_carried(self):
        block = AudioBlock(np.zeros(10, dtype=np.int16), sample_rate=16000, timestamp=2.5)
        frame = encode_frame(block)
        assert frame.sample_rate == 16000
        assert frame.timestamp == 2.5

    def test_deterministic(self):
        block = AudioBlock(np.arange(-50, 50, dtype=np.int16))
        assert encode_frame(block) == encode_frame(block)

    @pytest.mark.parametrize(
        "samples",
        [
            np.zeros(1024, dtype=np.int16),
            np.array([-32768, 32767, 0, -1, 1], dtype=np.int16),
            np.random.default_rng(7).integers(-32768, 32767, size=1024, endpoint=True).astype(np.int16),
            np.zeros(0, dtype=np.int16),
        ],
    )
    def test_decode_restores_identical_samples(self, samples):
        """Decoding yields byte-identical samples to the source block."""
        block = AudioBlock(samples, timestamp=3.0)
        decoded = decode_frame(encode_frame(block))
        assert decoded.to_bytes() == block.to_bytes()
        assert decoded.sample_rate == block.sample_rate
        assert decoded.timestamp == block.timestamp


class TestFrameMessage:
    """Tests for the {"frames": ...} envelope."""

    def test_message_shape(self):
        frame = encode_frame(AudioBlock(np.array([5, 6], dtype=np.int16)))
        data = json.loads(frame.message())
        assert list(data) == ["frames"]
        assert data["frames"] == frame.payload

    def test_decode_frame_message(self):
        block = AudioBlock(np.array([7, -7, 700], dtype=np.int16))
        assert decode_frame_message(encode_frame(block).message()) == block.to_bytes()

    @pytest.mark.parametrize(
        "message",
        [
            "not json",
            "[1, 2]",
            '{"event": "terminate"}',
            '{"frames": 12}',
            '{"frames": "@@not base64@@"}',
        ],
    )
    def test_decode_frame_message_rejects_malformed(self, message):
        with pytest.raises(ParseError):
            decode_frame_message(message)

    def test_encoded_frame_is_immutable(self):
        frame = EncodedFrame("AAA=", 1)
        with pytest.raises(AttributeError):
            frame.payload = "BBB="

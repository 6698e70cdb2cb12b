"""Microphone capture: engine plus pluggable input backends."""

from speechstream.capture.engine import AudioCaptureEngine, BlockSink
from speechstream.capture.protocol import AudioCallback, InputStream, StreamFactory

__all__ = [
    "AudioCaptureEngine",
    "AudioCallback",
    "BlockSink",
    "InputStream",
    "StreamFactory",
]

"""Fake input backend for hardware-free testing.

Blocks are pushed by the test through ``FakeInputStream.emit``, which invokes
the capture callback synchronously with sounddevice's argument shapes.
"""

import time
from types import SimpleNamespace

import numpy as np

from speechstream.capture.protocol import AudioCallback
from speechstream.errors import AudioError


class FakeInputStream:
    """In-memory stand-in for a PortAudio input stream."""

    def __init__(
        self,
        factory: "FakeStreamFactory",
        device: int | None,
        sample_rate: int,
        block_size: int,
        callback: AudioCallback,
    ):
        self._factory = factory
        self.device = device
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.callback = callback
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self._factory.fail_on_start is not None:
            raise self._factory.fail_on_start
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._factory._released(self)

    def emit(self, samples: np.ndarray | None = None, status=None) -> None:
        """Deliver one block to the callback, as the audio thread would.

        Args:
            samples: int16 samples; defaults to one block of silence.
            status: Optional callback status flags.
        """
        if samples is None:
            samples = np.zeros(self.block_size, dtype=np.int16)
        indata = np.asarray(samples, dtype=np.int16).reshape(-1, 1)
        time_info = SimpleNamespace(inputBufferAdcTime=time.monotonic())
        self.callback(indata, len(indata), time_info, status)


class FakeStreamFactory:
    """StreamFactory that records every stream it opens.

    ``active`` and ``max_active`` count streams opened and not yet closed,
    so tests can assert two captures never overlap.
    """

    def __init__(
        self,
        fail_on_open: AudioError | None = None,
        fail_on_start: AudioError | None = None,
    ):
        self.fail_on_open = fail_on_open
        self.fail_on_start = fail_on_start
        self.streams: list[FakeInputStream] = []
        self.active = 0
        self.max_active = 0

    def __call__(
        self,
        device: int | None,
        sample_rate: int,
        block_size: int,
        callback: AudioCallback,
    ) -> FakeInputStream:
        if self.fail_on_open is not None:
            raise self.fail_on_open
        stream = FakeInputStream(self, device, sample_rate, block_size, callback)
        self.streams.append(stream)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return stream

    @property
    def current(self) -> FakeInputStream | None:
        """Most recently opened stream, if any."""
        return self.streams[-1] if self.streams else None

    def _released(self, stream: FakeInputStream) -> None:
        self.active -= 1

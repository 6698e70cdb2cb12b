"""Protocol defining the interface for microphone input backends.

This is the boundary that isolates PortAudio from the rest of the system
(capture engine, controller, tests).
"""

from collections.abc import Callable
from typing import Any, Protocol

import numpy as np

# (indata, frames, time_info, status), the sounddevice callback signature
AudioCallback = Callable[[np.ndarray, int, Any, Any], None]


class InputStream(Protocol):
    """An opened, not yet started, input stream."""

    def start(self) -> None:
        """Begin invoking the callback at the block cadence.

        Raises:
            AudioError: If the device cannot be activated.
        """
        ...

    def stop(self) -> None:
        """Stop invoking the callback."""
        ...

    def close(self) -> None:
        """Release the device."""
        ...


class StreamFactory(Protocol):
    """Opens an int16 mono input stream.

    Implementations translate backend failures into ``AudioError`` subclasses
    and must not leave a device open when they raise.
    """

    def __call__(
        self,
        device: int | None,
        sample_rate: int,
        block_size: int,
        callback: AudioCallback,
    ) -> InputStream:
        ...

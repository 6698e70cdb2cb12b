"""Audio blocks and PCM conversion utilities.

Blocks hold 48kHz mono PCM16 samples as read-only int16 arrays; the level
meter works on float32 normalized to [-1, 1].
"""

from dataclasses import dataclass

import numpy as np

from speechstream.constants import BYTES_PER_SAMPLE, SAMPLE_RATE

PCM16 = np.dtype("<i2")


@dataclass(frozen=True, eq=False)
class AudioBlock:
    """One captured block of mono PCM16 samples.

    The sample array is copied and marked read-only on construction, so a
    block can be handed between threads without further locking.
    """

    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE
    timestamp: float = 0.0

    def __post_init__(self):
        samples = np.array(self.samples, dtype=PCM16).reshape(-1)
        samples.flags.writeable = False
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def duration_s(self) -> float:
        """Block duration in seconds."""
        return len(self.samples) / self.sample_rate

    def to_bytes(self) -> bytes:
        """Raw little-endian PCM16 bytes."""
        return self.samples.tobytes()

    def to_float32(self) -> np.ndarray:
        """Samples as float32 normalized to [-1, 1]."""
        return pcm16_to_float32(self.to_bytes())

    @classmethod
    def from_bytes(
        cls, data: bytes, sample_rate: int = SAMPLE_RATE, timestamp: float = 0.0
    ) -> "AudioBlock":
        """Build a block from raw PCM16 bytes.

        Raises:
            ValueError: If the byte count is odd.
        """
        if not validate_audio_format(data):
            raise ValueError(f"PCM16 data must have an even byte count, got {len(data)}")
        return cls(np.frombuffer(data, dtype=PCM16), sample_rate, timestamp)


def pcm16_to_float32(data: bytes) -> np.ndarray:
    """Convert PCM16 bytes to float32 array normalized to [-1, 1].

    Args:
        data: Raw PCM16 little-endian audio bytes.

    Returns:
        Float32 numpy array with values in [-1, 1].
    """
    audio = np.frombuffer(data, dtype=PCM16).astype(np.float32)
    audio /= 32768.0
    return audio


def validate_audio_format(data: bytes) -> bool:
    """Check if audio data has valid PCM16 format.

    Args:
        data: Raw audio bytes to validate.

    Returns:
        True if data length is even (valid PCM16), False otherwise.
    """
    return len(data) % BYTES_PER_SAMPLE == 0

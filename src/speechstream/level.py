"""Loudness meter for live UI feedback."""

import numpy as np

from speechstream.audio import AudioBlock
from speechstream.constants import LEVEL_CEILING, LEVEL_FLOOR, LEVEL_GAIN


class LevelMeter:
    """Maps an audio block to a bounded display level.

    The level is the RMS of the normalized samples times a fixed gain,
    clamped to ``[floor, ceiling]``. Silence reads as ``floor``, never zero.
    """

    def __init__(
        self,
        gain: float = LEVEL_GAIN,
        floor: float = LEVEL_FLOOR,
        ceiling: float = LEVEL_CEILING,
    ):
        if floor > ceiling:
            raise ValueError(f"floor {floor} is above ceiling {ceiling}")
        self.gain = gain
        self.floor = floor
        self.ceiling = ceiling

    def measure(self, block: AudioBlock) -> float:
        """Return the display level for ``block``."""
        if len(block) == 0:
            return self.floor
        audio = block.to_float32().astype(np.float64)
        rms = float(np.sqrt(np.mean(np.square(audio))))
        return max(self.floor, min(self.ceiling, rms * self.gain))

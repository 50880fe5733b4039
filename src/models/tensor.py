"""
Tensor model passed to the inference worker.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class Tensor:
    """
    A single-image NCHW float32 tensor.

    The data buffer is flat and channel-major: all R samples, then all G,
    then all B, each row-major over height*width, normalized to [0, 1].
    Ownership moves to the inference channel on submit.

    Attributes:
        data: Flat float32 buffer of length 3*height*width.
        height: Image height in pixels.
        width: Image width in pixels.
    """
    data: np.ndarray
    height: int
    width: int

    @property
    def shape(self) -> Tuple[int, int, int, int]:
        """Return (1, 3, height, width)."""
        return (1, 3, self.height, self.width)

    def as_nchw(self) -> np.ndarray:
        """Return a (1, 3, H, W) view of the flat buffer."""
        return self.data.reshape(self.shape)

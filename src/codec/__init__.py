"""
Conversion between pixel buffers, model tensors and detections.
"""

from .tensor_codec import (
    CONFIDENCE_THRESHOLD,
    decode,
    denormalize,
    encode,
)

__all__ = [
    "CONFIDENCE_THRESHOLD",
    "decode",
    "denormalize",
    "encode",
]

"""
Tensor codec.

encode() turns an interleaved RGBA pixel buffer into a planar, normalized
float32 tensor. decode() turns the flat float buffer emitted by the model into
Detection records.
"""

from __future__ import annotations

from typing import List, Union

import numpy as np

from errors import InvalidBufferError, MalformedOutputError
from models.detection import Detection
from models.tensor import Tensor

RECORD_SIZE = 6
CONFIDENCE_THRESHOLD = 0.5

PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray]


def _as_uint8(pixel_buffer: PixelBuffer) -> np.ndarray:
    if isinstance(pixel_buffer, np.ndarray):
        return pixel_buffer.reshape(-1)
    return np.frombuffer(pixel_buffer, dtype=np.uint8)


def encode(pixel_buffer: PixelBuffer, width: int, height: int) -> Tensor:
    """
    Deinterleave an RGBA buffer into R, G, B planes scaled to [0, 1].

    Alpha is discarded. Accepts raw bytes or a numpy array of any shape
    holding width*height*4 samples.

    Raises:
        InvalidBufferError: If the buffer does not hold width*height*4 samples.
    """
    samples = _as_uint8(pixel_buffer)
    expected = width * height * 4
    if width <= 0 or height <= 0 or samples.size != expected:
        raise InvalidBufferError(
            f"Pixel buffer has {samples.size} samples, expected {expected} "
            f"for {width}x{height} RGBA"
        )

    pixels = samples.reshape(height * width, 4)
    planes = np.ascontiguousarray(pixels[:, :3].T, dtype=np.float32)
    planes /= 255.0
    return Tensor(data=planes.reshape(-1), height=height, width=width)


def denormalize(tensor: Tensor) -> np.ndarray:
    """Inverse of encode() for the colour channels: returns H x W x 3 uint8 RGB."""
    planes = tensor.data.reshape(3, tensor.height, tensor.width)
    rgb = np.rint(planes * 255.0).clip(0, 255).astype(np.uint8)
    return np.transpose(rgb, (1, 2, 0))


def decode(output_buffer) -> List[Detection]:
    """
    Interpret a flat buffer of [x, y, w, h, confidence, class_id] records.

    Only detections with confidence above the fixed threshold are kept.
    Order follows the model output; no sorting or overlap suppression.

    Raises:
        MalformedOutputError: If the buffer length is not a multiple of 6.
    """
    flat = np.asarray(output_buffer, dtype=np.float64).reshape(-1)
    if flat.size % RECORD_SIZE != 0:
        raise MalformedOutputError(
            f"Output buffer length {flat.size} is not a multiple of {RECORD_SIZE}"
        )

    records = flat.reshape(-1, RECORD_SIZE)
    keep = records[:, 4] > CONFIDENCE_THRESHOLD
    return [Detection.from_record(row) for row in records[keep]]

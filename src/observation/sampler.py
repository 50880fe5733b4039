"""
Frame sampler.

plan() turns a duration and a sampling interval into frame slots;
capture() seeks a source to one slot and renders the frame into a square,
letterboxed RGBA canvas.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Iterator, Optional

import cv2
import numpy as np

from errors import InvalidDurationError, SeekError, SeekTimeoutError
from models.frame import FrameRequest
from .base import VideoSource


@dataclass(frozen=True)
class FramePlan:
    """
    Lazy, restartable sequence of FrameRequests.

    Iterating twice yields the same requests; nothing is materialized up front.
    """
    duration_seconds: float
    interval_seconds: float

    @property
    def total_frames(self) -> int:
        return math.floor(self.duration_seconds / self.interval_seconds)

    def __len__(self) -> int:
        return self.total_frames

    def __iter__(self) -> Iterator[FrameRequest]:
        for i in range(self.total_frames):
            yield FrameRequest(frame_index=i, timestamp_seconds=i * self.interval_seconds)

    def __getitem__(self, index: int) -> FrameRequest:
        if index < 0:
            index += self.total_frames
        if not 0 <= index < self.total_frames:
            raise IndexError(f"Frame index {index} out of range")
        return FrameRequest(frame_index=index, timestamp_seconds=index * self.interval_seconds)


def _is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def plan(duration_seconds: float, interval_seconds: float) -> FramePlan:
    """
    Plan floor(duration / interval) frames at timestamps i * interval.

    Raises:
        InvalidDurationError: If interval is not a positive finite number, or
            duration is not a finite number at least one interval long.
    """
    if not _is_finite_number(interval_seconds) or interval_seconds <= 0:
        raise InvalidDurationError(f"Invalid sampling interval: {interval_seconds!r}")
    if not _is_finite_number(duration_seconds) or duration_seconds < interval_seconds:
        raise InvalidDurationError(
            f"Invalid video duration {duration_seconds!r} for interval {interval_seconds}s"
        )
    return FramePlan(duration_seconds=float(duration_seconds), interval_seconds=float(interval_seconds))


def letterbox(frame: np.ndarray, output_size: int) -> np.ndarray:
    """
    Fit frame into an output_size x output_size RGBA canvas.

    The image is scaled by min(size/w, size/h), centred, and the border is
    opaque black.
    """
    if frame.ndim == 3 and frame.shape[2] == 3:
        frame = cv2.cvtColor(frame, cv2.COLOR_RGB2RGBA)

    src_h, src_w = frame.shape[:2]
    scale = min(output_size / src_w, output_size / src_h)
    new_w = min(output_size, max(1, int(round(src_w * scale))))
    new_h = min(output_size, max(1, int(round(src_h * scale))))
    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR
    resized = cv2.resize(frame, (new_w, new_h), interpolation=interpolation)

    canvas = np.zeros((output_size, output_size, 4), dtype=np.uint8)
    canvas[..., 3] = 255
    x_off = (output_size - new_w) // 2
    y_off = (output_size - new_h) // 2
    canvas[y_off:y_off + new_h, x_off:x_off + new_w] = resized
    return canvas


def capture(
    source: VideoSource,
    timestamp_seconds: float,
    output_size: int,
    timeout: Optional[float] = None,
) -> np.ndarray:
    """
    Seek source to timestamp_seconds, wait for it to settle, and return the
    letterboxed output_size x output_size x 4 RGBA frame.

    Raises:
        SeekTimeoutError: If the seek does not settle within timeout seconds.
        SeekError: If the source reports a failed seek or has no frame.
    """
    settled = source.seek(timestamp_seconds)
    try:
        settled.result(timeout=timeout)
    except FutureTimeoutError:
        raise SeekTimeoutError(
            f"Seek to {timestamp_seconds:.3f}s did not settle within {timeout}s",
            timestamp=timestamp_seconds,
        ) from None
    except SeekError:
        raise
    except Exception as e:
        raise SeekError(f"Seek to {timestamp_seconds:.3f}s failed: {e}", timestamp=timestamp_seconds) from e

    frame = source.read_frame()
    if frame is None or frame.size == 0:
        raise SeekError(f"No frame available at {timestamp_seconds:.3f}s", timestamp=timestamp_seconds)

    logging.debug(
        f"Captured frame at {timestamp_seconds:.3f}s from {source.source_id} "
        f"({frame.shape[1]}x{frame.shape[0]} -> {output_size}x{output_size})"
    )
    return letterbox(frame, output_size)

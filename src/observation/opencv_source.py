"""
OpenCV-based video file source.

Wraps cv2.VideoCapture behind the seek/read contract of VideoSource. All
capture calls happen on one background thread; seek() queues a positioned
read there and returns its Future.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional

import cv2
import numpy as np

from errors import SeekError
from .base import VideoSource, VideoSourceConfig


@dataclass
class OpenCVSourceConfig(VideoSourceConfig):
    """
    Configuration for OpenCV-backed video files.

    Attributes:
        path: Path to the video file.
        swap_rb: Swap R/B channels (fixes RGB vs BGR issues with some decoders).
    """
    path: str = ""
    swap_rb: bool = False

    @classmethod
    def from_path(cls, path: str, source_id: Optional[str] = None) -> "OpenCVSourceConfig":
        return cls(source_id=source_id or os.path.basename(path), path=path)


class OpenCVVideoSource(VideoSource):
    """
    Seekable video file source backed by cv2.VideoCapture.

    Example:
        with OpenCVVideoSource(OpenCVSourceConfig.from_path("clip.mp4")) as source:
            source.seek(2.0).result(timeout=5)
            rgba = source.read_frame()
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._frame_lock = threading.Lock()
        self._current: Optional[np.ndarray] = None
        self._duration = 0.0
        self._width = 0
        self._height = 0

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def native_width(self) -> int:
        return self._width

    @property
    def native_height(self) -> int:
        return self._height

    def open(self) -> None:
        if self._is_open:
            return

        path = self._opencv_config.path
        if not os.path.exists(path):
            raise RuntimeError(f"Video file not found: {path}")

        self._cap = cv2.VideoCapture(path)
        if not self._cap.isOpened():
            self._cap = None
            raise RuntimeError(f"Failed to open video file: {path}")

        fps = self._cap.get(cv2.CAP_PROP_FPS) or 0.0
        frame_count = self._cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0
        self._duration = frame_count / fps if fps > 0 else 0.0
        self._width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="VideoSeek")
        self._is_open = True

        logging.info(
            f"OpenCVVideoSource opened: source_id={self.source_id}, "
            f"duration={self._duration:.2f}s, size={self._width}x{self._height}"
        )

    def seek(self, timestamp_seconds: float) -> Future:
        if not self._is_open or self._executor is None:
            raise RuntimeError("Source must be open before seeking")
        return self._executor.submit(self._seek_and_grab, timestamp_seconds)

    def _seek_and_grab(self, timestamp_seconds: float) -> None:
        if timestamp_seconds < 0 or timestamp_seconds > self._duration:
            raise SeekError(
                f"Timestamp {timestamp_seconds:.3f}s is outside the video (0-{self._duration:.3f}s)",
                timestamp=timestamp_seconds,
            )
        self._cap.set(cv2.CAP_PROP_POS_MSEC, timestamp_seconds * 1000.0)
        ret, frame = self._cap.read()
        if not ret or frame is None:
            raise SeekError(f"No frame decoded at {timestamp_seconds:.3f}s", timestamp=timestamp_seconds)
        with self._frame_lock:
            self._current = frame

    def read_frame(self) -> np.ndarray:
        with self._frame_lock:
            frame = self._current
        if frame is None:
            raise RuntimeError("No frame available; seek first")
        code = cv2.COLOR_RGB2RGBA if self._opencv_config.swap_rb else cv2.COLOR_BGR2RGBA
        return cv2.cvtColor(frame, code)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._current = None
        self._is_open = False
        logging.info(f"OpenCVVideoSource closed: source_id={self.source_id}")

    def get_video_info(self) -> Dict[str, Any]:
        """Get information about the opened video file."""
        if self._cap is None or not self._cap.isOpened():
            return {}

        return {
            "width": self._width,
            "height": self._height,
            "fps": self._cap.get(cv2.CAP_PROP_FPS),
            "frame_count": int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT)),
            "duration": self._duration,
        }

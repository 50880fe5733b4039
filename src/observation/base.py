"""
VideoSource interface for seekable video inputs.

The sampler drives a source in two phases per frame: request a seek and wait
for it to settle, then read the current frame. Seeking is asynchronous, so
seek() hands back a Future that completes once the source is positioned.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Dict

import numpy as np


@dataclass
class VideoSourceConfig:
    """
    Base configuration for video sources.

    Attributes:
        source_id: Identifier used in logs (e.g., "upload-42").
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    metadata: Dict[str, Any] = field(default_factory=dict)


class VideoSource(ABC):
    """
    Abstract base class for seekable video sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to initialize the source
        3. seek() / read_frame() as often as needed
        4. Call close() to release resources

    Can also be used as a context manager:
        with OpenCVVideoSource(config) as source:
            engine.run(source, interval_seconds=1.0, output_size=640)
    """

    def __init__(self, config: VideoSourceConfig):
        self._config = config
        self._is_open = False

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    @abstractmethod
    def duration(self) -> float:
        """Length of the video in seconds."""
        pass

    @property
    @abstractmethod
    def native_width(self) -> int:
        pass

    @property
    @abstractmethod
    def native_height(self) -> int:
        pass

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """
        pass

    @abstractmethod
    def seek(self, timestamp_seconds: float) -> Future:
        """
        Request a seek to timestamp_seconds.

        Returns a Future that completes once the source has settled on the
        new position, or fails (e.g., SeekError) if the seek is impossible.
        """
        pass

    @abstractmethod
    def read_frame(self) -> np.ndarray:
        """Return the current frame as an H x W x 4 uint8 RGBA array."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        pass

    def __enter__(self) -> "VideoSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

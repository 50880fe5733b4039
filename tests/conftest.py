"""
Pytest configuration and shared fixtures.
"""

import os
import sys
from concurrent.futures import Future

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from errors import SeekError  # noqa: E402
from observation.base import VideoSource, VideoSourceConfig  # noqa: E402


class FakeVideoSource(VideoSource):
    """
    Scriptable in-memory video source.

    Each frame is a solid RGBA image whose red channel encodes the
    timestamp (int(ts * 10) % 256), so tests can tell frames apart.
    """

    def __init__(self, duration, width=320, height=240, hang_at=(), fail_at=()):
        super().__init__(VideoSourceConfig(source_id="fake"))
        self._duration = duration
        self._width = width
        self._height = height
        self._hang_at = set(hang_at)
        self._fail_at = set(fail_at)
        self._current = None
        self.seeks = []
        self.reads = 0

    @property
    def duration(self):
        return self._duration

    @property
    def native_width(self):
        return self._width

    @property
    def native_height(self):
        return self._height

    def open(self):
        self._is_open = True

    def close(self):
        self._is_open = False

    def seek(self, timestamp_seconds):
        self.seeks.append(timestamp_seconds)
        future = Future()
        if timestamp_seconds in self._hang_at:
            return future
        if timestamp_seconds in self._fail_at:
            future.set_exception(SeekError("seek failed", timestamp=timestamp_seconds))
            return future
        self._current = timestamp_seconds
        future.set_result(None)
        return future

    def read_frame(self):
        self.reads += 1
        frame = np.zeros((self._height, self._width, 4), dtype=np.uint8)
        frame[..., 0] = int(self._current * 10) % 256
        frame[..., 3] = 255
        return frame


@pytest.fixture
def make_source():
    """Factory for FakeVideoSource instances."""
    return FakeVideoSource


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
model:
  path: "models/test.onnx"
  engine: "onnx"

sampling:
  interval_seconds: 1.0
  output_size: 640
  seek_timeout: 10.0

inference:
  transport: "thread"
  init_timeout: 30.0

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "model": {
            "path": "models/test.onnx",
            "engine": "onnx",
            "class_names": {0: "person", 2: "car"},
        },
        "sampling": {
            "interval_seconds": 1.0,
            "output_size": 640,
            "seek_timeout": 10.0,
        },
        "inference": {
            "transport": "thread",
            "init_timeout": 30.0,
        },
        "output": {"results_path": None},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }

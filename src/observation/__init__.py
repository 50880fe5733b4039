"""
Observation layer: seekable video sources and the frame sampler.

Sources hide where frames come from (video files today); the sampler plans
frame slots and captures each one at a fixed, letterboxed resolution.
"""

from .base import VideoSource, VideoSourceConfig
from .opencv_source import OpenCVSourceConfig, OpenCVVideoSource
from .sampler import FramePlan, capture, letterbox, plan

__all__ = [
    "VideoSource",
    "VideoSourceConfig",
    "OpenCVVideoSource",
    "OpenCVSourceConfig",
    "FramePlan",
    "capture",
    "letterbox",
    "plan",
]

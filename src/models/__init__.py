"""
Typed models for the frame inference pipeline.
"""

from .frame import FrameRequest, FrameResult
from .detection import Detection
from .tensor import Tensor
from .state import PipelineState, RunState, RunSummary
from .config import (
    Config,
    ModelConfig,
    SamplingConfig,
    InferenceConfig,
    OutputConfig,
)

__all__ = [
    # Frames
    "FrameRequest",
    "FrameResult",
    # Detection
    "Detection",
    "Tensor",
    # Run state
    "PipelineState",
    "RunState",
    "RunSummary",
    # Config
    "Config",
    "ModelConfig",
    "SamplingConfig",
    "InferenceConfig",
    "OutputConfig",
]

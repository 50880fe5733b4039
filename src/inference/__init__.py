"""
Inference layer: an isolated worker running the model, and the channel the
pipeline uses to talk to it.
"""

from .backend import InferenceEngine, OnnxConfig, OnnxRuntimeEngine, create_engine
from .channel import DetectionBatch, InferenceChannel, create_channel_from_config
from .transport import ProcessTransport, ThreadTransport, Transport
from .worker import InferenceWorker

__all__ = [
    "InferenceEngine",
    "OnnxConfig",
    "OnnxRuntimeEngine",
    "create_engine",
    "DetectionBatch",
    "InferenceChannel",
    "create_channel_from_config",
    "ProcessTransport",
    "ThreadTransport",
    "Transport",
    "InferenceWorker",
]

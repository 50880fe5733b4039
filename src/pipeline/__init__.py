"""
Pipeline module for frame sampling and inference coordination.

The pipeline orchestrates the full processing flow:
- Frame planning and capture from a video source
- Tensor encoding and submission to the inference worker
- Decoding replies and reporting results/progress to a sink
"""

from .engine import PipelineEngine, PipelineConfig, create_engine_from_config
from .sinks import CompositeSink, JsonLinesSink, LoggingSink, MemorySink, ResultSink

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "create_engine_from_config",
    "CompositeSink",
    "JsonLinesSink",
    "LoggingSink",
    "MemorySink",
    "ResultSink",
]

"""
Exception taxonomy for the frame sampling and inference pipeline.

Codec errors signal a contract violation by a collaborator and are always
fatal to the current operation. Pipeline errors are raised while sampling,
submitting or awaiting frames. Nothing here is retried automatically.
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(PipelineError):
    """Raised when configuration is invalid."""
    pass


class CodecError(PipelineError):
    """Base class for tensor codec failures."""
    pass


class InvalidBufferError(CodecError):
    """Raised when a pixel buffer does not match width*height*4 samples."""
    pass


class MalformedOutputError(CodecError):
    """Raised when an inference output buffer is not made of 6-float records."""
    pass


class InvalidDurationError(PipelineError):
    """Raised when a video duration or sampling interval cannot be planned."""
    pass


class SeekError(PipelineError):
    """Raised when a video source fails to settle on a requested timestamp."""

    def __init__(self, message: str, timestamp: Optional[float] = None):
        super().__init__(message)
        self.timestamp = timestamp


class SeekTimeoutError(SeekError):
    """Raised when a seek does not settle within the allowed wait."""
    pass


class ModelInitError(PipelineError):
    """Raised when the inference worker fails its init handshake."""

    def __init__(self, reason: str):
        super().__init__(f"Model initialization failed: {reason}")
        self.reason = reason


class NotReadyError(PipelineError):
    """Raised when submitting to an inference channel that is not ready."""
    pass


class ModelNotReadyError(PipelineError):
    """Raised when a run is started before the model is ready."""
    pass


class ChannelClosedError(PipelineError):
    """Raised for requests still pending when an inference channel closes."""
    pass


class InferenceError(PipelineError):
    """Raised when the inference worker reports a failure for a request."""

    def __init__(self, correlation_id: Optional[int], reason: str):
        super().__init__(f"Inference failed for request {correlation_id}: {reason}")
        self.correlation_id = correlation_id
        self.reason = reason


class InferenceTimeoutError(InferenceError):
    """Raised when no reply arrives for a request within the allowed wait."""
    pass

"""
Frame models for sampled video frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .detection import Detection


@dataclass(frozen=True)
class FrameRequest:
    """
    A frame slot planned by the sampler.

    Attributes:
        frame_index: Sequential slot number within a run, starting at 0.
        timestamp_seconds: Position in the video to seek to.
    """
    frame_index: int
    timestamp_seconds: float


@dataclass
class FrameResult:
    """
    Detections for one successfully processed frame.

    Attributes:
        frame_index: Slot number of the originating FrameRequest.
        timestamp_seconds: Timestamp the frame was captured at.
        detections: Detections in model output order.
    """
    frame_index: int
    timestamp_seconds: float
    detections: List[Detection] = field(default_factory=list)

    @classmethod
    def from_request(cls, request: FrameRequest, detections: List[Detection]) -> "FrameResult":
        return cls(
            frame_index=request.frame_index,
            timestamp_seconds=request.timestamp_seconds,
            detections=list(detections),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "frame_index": self.frame_index,
            "timestamp_seconds": self.timestamp_seconds,
            "detections": [d.to_dict() for d in self.detections],
        }

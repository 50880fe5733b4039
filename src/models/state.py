"""
Run state models for the pipeline orchestrator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .frame import FrameResult


class RunState(str, Enum):
    """Lifecycle of one processing run."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.COMPLETED, RunState.FAILED, RunState.CANCELLED)


@dataclass
class PipelineState:
    """
    Progress of the current run.

    Everything except model_ready is reset at the start of each run;
    model_ready stays True once the inference worker has initialized.
    """
    model_ready: bool = False
    total_frames: int = 0
    completed_frames: int = 0
    running: bool = False

    def reset(self) -> None:
        self.total_frames = 0
        self.completed_frames = 0
        self.running = False

    @property
    def progress(self) -> float:
        """Fraction of planned frames completed, in [0, 1]."""
        if self.total_frames <= 0:
            return 0.0
        return self.completed_frames / self.total_frames


@dataclass
class RunSummary:
    """
    Terminal outcome of one run.

    Attributes:
        state: COMPLETED, FAILED or CANCELLED.
        total_frames: Number of frames planned.
        completed_frames: Number of frames whose results reached the sink.
        results: Results in frame order, including partial results of a failed run.
        error: The exception that ended a FAILED run.
    """
    state: RunState
    total_frames: int = 0
    completed_frames: int = 0
    results: List[FrameResult] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "total_frames": self.total_frames,
            "completed_frames": self.completed_frames,
            "error": str(self.error) if self.error is not None else None,
        }

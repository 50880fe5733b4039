"""
Result sinks.

A sink receives FrameResults in frame order and progress fractions in [0, 1].
Presentation is up to the sink; the pipeline only guarantees ordering.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Dict, List, Optional, Protocol, Sequence

from models.frame import FrameResult


class ResultSink(Protocol):
    def add_result(self, result: FrameResult) -> None:
        ...

    def update_progress(self, fraction: float) -> None:
        ...


class MemorySink:
    """Collects results and progress updates in memory."""

    def __init__(self):
        self.results: List[FrameResult] = []
        self.progress: List[float] = []

    def add_result(self, result: FrameResult) -> None:
        self.results.append(result)

    def update_progress(self, fraction: float) -> None:
        self.progress.append(fraction)

    def clear(self) -> None:
        self.results.clear()
        self.progress.clear()


class LoggingSink:
    """Logs each frame's detections, mapping class ids through class_names when given."""

    def __init__(self, class_names: Optional[Dict[int, str]] = None):
        self.class_names = class_names or {}

    def add_result(self, result: FrameResult) -> None:
        logging.info(f"Time: {result.timestamp_seconds:.1f}s - {len(result.detections)} object(s)")
        for det in result.detections:
            logging.info(
                f"  {det.label(self.class_names)} at x: {det.x:.2f}, y: {det.y:.2f}, "
                f"width: {det.w:.2f}, height: {det.h:.2f}, "
                f"confidence: {det.confidence * 100:.1f}%"
            )

    def update_progress(self, fraction: float) -> None:
        logging.info(f"Progress: {fraction * 100:.1f}%")


class JsonLinesSink:
    """Writes one JSON object per frame to a file, replacing any earlier contents."""

    def __init__(self, path: str):
        self.path = path
        out_dir = os.path.dirname(path)
        if out_dir and not os.path.exists(out_dir):
            os.makedirs(out_dir)
        open(path, "w").close()

    def add_result(self, result: FrameResult) -> None:
        with open(self.path, "a") as f:
            f.write(json.dumps(result.to_dict()) + "\n")

    def update_progress(self, fraction: float) -> None:
        pass


class CompositeSink:
    """Fans results and progress out to several sinks in order."""

    def __init__(self, sinks: Sequence[ResultSink]):
        self.sinks = list(sinks)

    def add_result(self, result: FrameResult) -> None:
        for sink in self.sinks:
            sink.add_result(result)

    def update_progress(self, fraction: float) -> None:
        for sink in self.sinks:
            sink.update_progress(fraction)

"""
Detection model for decoded inference output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Detection:
    """
    A single detection in model output coordinates.

    Attributes:
        x: Box x coordinate as emitted by the model.
        y: Box y coordinate as emitted by the model.
        w: Box width.
        h: Box height.
        confidence: Detection confidence score (0-1).
        class_id: Numeric class id from the model.
    """
    x: float
    y: float
    w: float
    h: float
    confidence: float
    class_id: int

    @property
    def box(self) -> Tuple[float, float, float, float]:
        """Return as (x, y, w, h) tuple."""
        return (self.x, self.y, self.w, self.h)

    @classmethod
    def from_record(cls, record: Sequence[float]) -> "Detection":
        """
        Adapter: Convert a 6-float record [x, y, w, h, confidence, class_id].
        """
        return cls(
            x=float(record[0]),
            y=float(record[1]),
            w=float(record[2]),
            h=float(record[3]),
            confidence=float(record[4]),
            class_id=int(record[5]),
        )

    def label(self, class_names: Optional[Mapping[int, str]] = None) -> str:
        """Human-readable class label, falling back to the numeric id."""
        if class_names and self.class_id in class_names:
            return class_names[self.class_id]
        return str(self.class_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "confidence": self.confidence,
            "class_id": self.class_id,
        }

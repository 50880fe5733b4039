"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class ModelConfig:
    """Inference model configuration."""
    path: str = "models/yolov8n.onnx"
    engine: str = "onnx"
    class_names: Optional[Dict[int, str]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        """Adapter: Create from config dictionary."""
        class_names = d.get("class_names")
        if class_names:
            class_names = {int(k): str(v) for k, v in class_names.items()}
        return cls(
            path=d.get("path", "models/yolov8n.onnx"),
            engine=d.get("engine", "onnx"),
            class_names=class_names or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "path": self.path,
            "engine": self.engine,
        }
        if self.class_names is not None:
            d["class_names"] = self.class_names
        return d


@dataclass
class SamplingConfig:
    """Frame sampling configuration."""
    interval_seconds: float = 1.0
    output_size: int = 640
    seek_timeout: float = 10.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SamplingConfig":
        return cls(
            interval_seconds=float(d.get("interval_seconds", 1.0)),
            output_size=int(d.get("output_size", 640)),
            seek_timeout=float(d.get("seek_timeout", 10.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "interval_seconds": self.interval_seconds,
            "output_size": self.output_size,
            "seek_timeout": self.seek_timeout,
        }


@dataclass
class InferenceConfig:
    """Inference worker configuration."""
    transport: str = "process"
    init_timeout: float = 60.0
    reply_timeout: Optional[float] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InferenceConfig":
        reply_timeout = d.get("reply_timeout")
        return cls(
            transport=d.get("transport", "process"),
            init_timeout=float(d.get("init_timeout", 60.0)),
            reply_timeout=float(reply_timeout) if reply_timeout is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transport": self.transport,
            "init_timeout": self.init_timeout,
            "reply_timeout": self.reply_timeout,
        }


@dataclass
class OutputConfig:
    """Result output configuration."""
    results_path: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "OutputConfig":
        return cls(results_path=d.get("results_path"))

    def to_dict(self) -> Dict[str, Any]:
        return {"results_path": self.results_path}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    model: ModelConfig = field(default_factory=ModelConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    log_path: str = "logs/frame_inference.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            model=ModelConfig.from_dict(d.get("model") or {}),
            sampling=SamplingConfig.from_dict(d.get("sampling") or {}),
            inference=InferenceConfig.from_dict(d.get("inference") or {}),
            output=OutputConfig.from_dict(d.get("output") or {}),
            log_path=d.get("log_path", "logs/frame_inference.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "model": self.model.to_dict(),
            "sampling": self.sampling.to_dict(),
            "inference": self.inference.to_dict(),
            "output": self.output.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }

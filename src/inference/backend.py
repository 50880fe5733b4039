"""
Inference engine interface.

An engine is the opaque tensor executor living inside the inference worker:
it receives a (1, 3, H, W) float32 array and returns the model's first output
as a flat float32 buffer of [x, y, w, h, confidence, class_id] records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Protocol, Sequence

import numpy as np


class InferenceEngine(Protocol):
    def run(self, tensor: np.ndarray) -> np.ndarray:
        ...


@dataclass(frozen=True)
class OnnxConfig:
    model_path: str
    providers: Sequence[str] = field(default_factory=lambda: ("CPUExecutionProvider",))


class OnnxRuntimeEngine(InferenceEngine):
    def __init__(self, cfg: OnnxConfig):
        self.cfg = cfg
        try:
            import onnxruntime as ort  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is not installed. Install with `pip install onnxruntime`."
            ) from e

        self._session = ort.InferenceSession(cfg.model_path, providers=list(cfg.providers))
        self._input_name = self._session.get_inputs()[0].name
        self._output_name = self._session.get_outputs()[0].name

    def run(self, tensor: np.ndarray) -> np.ndarray:
        outputs = self._session.run(
            [self._output_name],
            {self._input_name: np.asarray(tensor, dtype=np.float32)},
        )
        return np.asarray(outputs[0], dtype=np.float32).reshape(-1)


def _create_onnx_engine(model_path: str) -> InferenceEngine:
    return OnnxRuntimeEngine(OnnxConfig(model_path=model_path))


ENGINE_FACTORIES: Dict[str, Callable[[str], InferenceEngine]] = {
    "onnx": _create_onnx_engine,
}


def create_engine(name: str, model_path: str) -> InferenceEngine:
    """
    Build an engine by name, loading weights from model_path.

    Module-level so that functools.partial(create_engine, name) can be
    pickled into a spawned worker process.
    """
    try:
        factory = ENGINE_FACTORIES[name]
    except KeyError:
        raise ValueError(
            f"Unknown inference engine '{name}'. Available: {sorted(ENGINE_FACTORIES)}"
        ) from None
    return factory(model_path)

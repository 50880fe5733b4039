"""
Inference worker.

The worker side of the request/reply protocol. It accepts two message kinds,
"init" and "detect", and emits three, "initialized", "detection" and "error".
The model is loaded once, lazily, on the first successful "init".

Messages are plain dicts so they can cross a thread queue or a process queue
unchanged:

    {"type": "init"}
    {"type": "detect", "frame_index": 3, "tensor": <float32[3*H*W]>, "shape": (1, 3, H, W)}

    {"type": "initialized", "success": True}
    {"type": "initialized", "success": False, "error": "..."}
    {"type": "detection", "frame_index": 3, "output": <float32[N*6]>}
    {"type": "error", "frame_index": 3, "message": "..."}
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import numpy as np

from .backend import InferenceEngine

MSG_INIT = "init"
MSG_DETECT = "detect"
MSG_INITIALIZED = "initialized"
MSG_DETECTION = "detection"
MSG_ERROR = "error"

Message = Dict[str, Any]


class InferenceWorker:
    """
    Handles protocol messages against a lazily created engine.

    Example:
        worker = InferenceWorker("yolov8n.onnx", partial(create_engine, "onnx"))
        worker.handle({"type": "init"})
    """

    def __init__(self, model_path: str, engine_factory: Callable[[str], InferenceEngine]):
        self.model_path = model_path
        self._engine_factory = engine_factory
        self._engine: Optional[InferenceEngine] = None

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    def handle(self, message: Message) -> Message:
        """Process one request and return exactly one reply."""
        msg_type = message.get("type")
        if msg_type == MSG_INIT:
            return self._handle_init()
        if msg_type == MSG_DETECT:
            return self._handle_detect(message)
        return {"type": MSG_ERROR, "frame_index": None, "message": f"Unknown message type: {msg_type!r}"}

    def _handle_init(self) -> Message:
        if self._engine is not None:
            return {"type": MSG_INITIALIZED, "success": True}
        try:
            self._engine = self._engine_factory(self.model_path)
        except Exception as e:
            logging.error(f"Failed to load model from {self.model_path}: {e}")
            return {"type": MSG_INITIALIZED, "success": False, "error": str(e)}
        logging.info(f"Model loaded: {self.model_path}")
        return {"type": MSG_INITIALIZED, "success": True}

    def _handle_detect(self, message: Message) -> Message:
        frame_index = message.get("frame_index")
        if self._engine is None:
            return {"type": MSG_ERROR, "frame_index": frame_index, "message": "Model not initialized"}
        try:
            tensor = np.asarray(message["tensor"], dtype=np.float32).reshape(message["shape"])
            output = self._engine.run(tensor)
        except Exception as e:
            logging.warning(f"Inference failed for frame {frame_index}: {e}")
            return {"type": MSG_ERROR, "frame_index": frame_index, "message": str(e)}
        return {
            "type": MSG_DETECTION,
            "frame_index": frame_index,
            "output": np.asarray(output, dtype=np.float32).reshape(-1),
        }


def serve(worker: InferenceWorker, requests, replies) -> None:
    """
    Worker loop: answer requests until a None sentinel arrives.

    requests/replies are any objects with queue-style get()/put().
    """
    while True:
        message = requests.get()
        if message is None:
            break
        replies.put(worker.handle(message))

"""
Inference channel.

Client side of the worker protocol: a one-time init handshake with a cached
readiness flag, and correlated request/reply for tensors. Every submitted
request gets a Future registered in a pending map under its correlation id;
a reader thread drains worker replies and resolves the matching Future,
removing it from the map. No retries happen here.
"""

from __future__ import annotations

import functools
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from errors import ChannelClosedError, InferenceError, ModelInitError, NotReadyError
from models.tensor import Tensor
from .backend import create_engine
from .transport import ProcessTransport, ThreadTransport, Transport
from .worker import (
    MSG_DETECT,
    MSG_DETECTION,
    MSG_ERROR,
    MSG_INIT,
    MSG_INITIALIZED,
    InferenceWorker,
    Message,
)


@dataclass(frozen=True)
class DetectionBatch:
    """Reply to one submission: the model's raw flat output for that request."""
    correlation_id: int
    output: np.ndarray


def _new_future() -> Future:
    future: Future = Future()
    # Marks the future running so callers cannot cancel it out from under the reader.
    future.set_running_or_notify_cancel()
    return future


class InferenceChannel:
    """
    Typed request/reply channel to an isolated inference worker.

    Example:
        channel = InferenceChannel(ProcessTransport(model_path, factory))
        channel.initialize().result(timeout=60)
        batch = channel.submit(tensor, correlation_id=0).result()
    """

    def __init__(self, transport: Transport, poll_interval: float = 0.1):
        self._transport = transport
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._pending: Dict[int, Future] = {}
        self._abandoned: Dict[int, int] = {}
        self._init_future: Optional[Future] = None
        self._ready = False
        self._closed = False
        self._stop_event = threading.Event()
        self._reader: Optional[threading.Thread] = None
        self._lost = False

        # Instrumentation
        self.submitted_count = 0
        self.reply_count = 0

    @property
    def ready(self) -> bool:
        """True once the init handshake has succeeded."""
        return self._ready

    @property
    def in_flight(self) -> int:
        """Number of submitted requests still awaiting a reply."""
        with self._lock:
            return len(self._pending)

    def initialize(self) -> Future:
        """
        Start the init handshake.

        Returns a Future resolving to True, or failing with ModelInitError.
        Calls made while initializing or already ready return the cached
        Future; a call after a failed handshake starts a fresh one. If the
        worker connection was lost, the transport is restarted first.
        """
        with self._lock:
            if self._closed:
                raise ChannelClosedError("Inference channel is closed")
            current = self._init_future
            if current is not None and (self._ready or not current.done()):
                return current
            if self._lost:
                logging.warning("Restarting inference worker after lost connection")
                self._transport.close()
                self._abandoned.clear()
                self._lost = False
            future = _new_future()
            self._init_future = future
            self._ensure_reader()

        logging.info("Initializing inference worker")
        self._transport.send({"type": MSG_INIT})
        return future

    def submit(self, tensor: Tensor, correlation_id: int) -> Future:
        """
        Send one tensor for inference.

        Returns a Future resolving to a DetectionBatch tagged with
        correlation_id, or failing with InferenceError.

        Raises:
            NotReadyError: If initialize() has not succeeded. Nothing is sent.
        """
        with self._lock:
            if self._closed:
                raise ChannelClosedError("Inference channel is closed")
            if not self._ready:
                raise NotReadyError("Inference channel is not initialized")
            if correlation_id in self._pending:
                raise ValueError(f"Request {correlation_id} is already in flight")
            future = _new_future()
            self._pending[correlation_id] = future
            self.submitted_count += 1

        message = {
            "type": MSG_DETECT,
            "frame_index": correlation_id,
            "tensor": tensor.data,
            "shape": tensor.shape,
        }
        try:
            self._transport.send(message)
        except Exception:
            with self._lock:
                self._pending.pop(correlation_id, None)
                self.submitted_count -= 1
            raise
        return future

    def abandon(self, correlation_id: int) -> None:
        """
        Stop waiting for a request.

        The worker answers in order, so the next reply carrying this id is
        the abandoned one and is dropped.
        """
        with self._lock:
            future = self._pending.pop(correlation_id, None)
            if future is None:
                return
            self._abandoned[correlation_id] = self._abandoned.get(correlation_id, 0) + 1
            # Counted as answered; the late reply is dropped uncounted.
            self.reply_count += 1
        future.set_exception(InferenceError(correlation_id, "request abandoned"))

    def close(self) -> None:
        """Shut down the worker and fail anything still pending."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._ready = False
            pending = list(self._pending.items())
            self._pending.clear()
            init_future = self._init_future

        self._stop_event.set()
        if self._reader is not None:
            self._reader.join(timeout=5.0)
            self._reader = None
        self._transport.close()

        for correlation_id, future in pending:
            future.set_exception(ChannelClosedError(f"Channel closed with request {correlation_id} pending"))
        if init_future is not None and not init_future.done():
            init_future.set_exception(ChannelClosedError("Channel closed during initialization"))
        logging.info("Inference channel closed")

    def __enter__(self) -> "InferenceChannel":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _ensure_reader(self) -> None:
        if self._reader is not None:
            return
        self._transport.start()
        self._reader = threading.Thread(
            target=self._read_loop,
            name="InferenceReplyReader",
            daemon=True,
        )
        self._reader.start()

    def _read_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                message = self._transport.receive(timeout=self._poll_interval)
            except (EOFError, OSError) as e:
                logging.error(f"Inference worker connection lost: {e}")
                self._fail_all(ChannelClosedError(f"Inference worker connection lost: {e}"))
                return
            if message is not None:
                self._dispatch(message)

    def _dispatch(self, message: Message) -> None:
        msg_type = message.get("type")
        if msg_type == MSG_INITIALIZED:
            self._on_initialized(bool(message.get("success")), message.get("error"))
        elif msg_type == MSG_DETECTION:
            future = self._take_pending(message.get("frame_index"))
            if future is not None:
                future.set_result(
                    DetectionBatch(
                        correlation_id=message["frame_index"],
                        output=np.asarray(message.get("output", ()), dtype=np.float32),
                    )
                )
        elif msg_type == MSG_ERROR:
            self._on_error(message.get("frame_index"), str(message.get("message", "unknown error")))
        else:
            logging.warning(f"Ignoring unknown worker message type: {msg_type!r}")

    def _on_initialized(self, success: bool, error: Optional[str]) -> None:
        with self._lock:
            self._ready = success
            future = self._init_future
        if future is None or future.done():
            return
        if success:
            logging.info("Inference worker ready")
            future.set_result(True)
        else:
            logging.error(f"Inference worker failed to initialize: {error}")
            future.set_exception(ModelInitError(error or "unknown error"))

    def _on_error(self, correlation_id: Any, reason: str) -> None:
        if correlation_id is None:
            with self._lock:
                future = self._init_future
            if future is not None and not future.done():
                future.set_exception(ModelInitError(reason))
            else:
                logging.error(f"Inference worker error: {reason}")
            return

        future = self._take_pending(correlation_id)
        if future is not None:
            future.set_exception(InferenceError(correlation_id, reason))

    def _take_pending(self, correlation_id: Any) -> Optional[Future]:
        with self._lock:
            stale = self._abandoned.get(correlation_id, 0)
            if stale:
                if stale == 1:
                    del self._abandoned[correlation_id]
                else:
                    self._abandoned[correlation_id] = stale - 1
                logging.debug(f"Dropping late reply for abandoned request {correlation_id}")
                return None
            future = self._pending.pop(correlation_id, None)
            if future is not None:
                self.reply_count += 1
        if future is None:
            logging.warning(f"Dropping reply for unknown request {correlation_id}")
        return future

    def _fail_all(self, error: Exception) -> None:
        """Fail everything outstanding after the reader loses the worker."""
        with self._lock:
            self._ready = False
            self._lost = True
            self._reader = None
            pending = list(self._pending.values())
            self._pending.clear()
            init_future = self._init_future
        for future in pending:
            future.set_exception(error)
        if init_future is not None and not init_future.done():
            init_future.set_exception(error)


def create_channel_from_config(config: Dict[str, Any]) -> InferenceChannel:
    """
    Factory function to create an InferenceChannel from the config dict.

    Args:
        config: Full application config dict.
    """
    model_cfg = config.get("model", {}) or {}
    inference_cfg = config.get("inference", {}) or {}
    model_path = model_cfg.get("path", "models/yolov8n.onnx")
    engine_factory = functools.partial(create_engine, model_cfg.get("engine", "onnx"))

    transport_name = inference_cfg.get("transport", "process")
    if transport_name == "thread":
        transport: Transport = ThreadTransport(InferenceWorker(model_path, engine_factory))
    elif transport_name == "process":
        transport = ProcessTransport(model_path, engine_factory)
    else:
        raise ValueError(f"Unknown inference transport: {transport_name}")

    logging.info(f"Inference channel: transport={transport_name}, model={model_path}")
    return InferenceChannel(transport)

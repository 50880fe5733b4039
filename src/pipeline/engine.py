"""
Pipeline engine.

Drives the frame sampler and the inference channel together. For each planned
frame, strictly in order: capture, encode, submit, wait for the correlated
reply, decode, hand the FrameResult to the sink and report progress. Only one
request is ever in flight, so results come out in frame order without any
reordering buffer.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from codec import decode, encode
from errors import InferenceTimeoutError, ModelNotReadyError
from inference.channel import InferenceChannel
from models.frame import FrameRequest, FrameResult
from models.state import PipelineState, RunState, RunSummary
from observation.base import VideoSource
from observation.sampler import capture, plan
from .sinks import ResultSink


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        seek_timeout: Seconds to wait for a seek to settle. None waits forever.
        reply_timeout: Seconds to wait for an inference reply. None waits forever.
    """
    seek_timeout: Optional[float] = 10.0
    reply_timeout: Optional[float] = None


class PipelineEngine:
    """
    Sequential frame-sampling and inference engine.

    State per run: IDLE -> RUNNING -> COMPLETED | FAILED | CANCELLED.
    Any error on a frame ends the run as FAILED; results already handed to
    the sink are kept and also returned in the RunSummary.

    Example:
        channel.initialize().result(timeout=60)
        engine = PipelineEngine(channel, MemorySink(), PipelineConfig())
        summary = engine.run(source, interval_seconds=1.0, output_size=640)
    """

    def __init__(
        self,
        channel: InferenceChannel,
        sink: ResultSink,
        config: Optional[PipelineConfig] = None,
    ):
        self.channel = channel
        self.sink = sink
        self.config = config or PipelineConfig()
        self.state = PipelineState()
        self.run_state = RunState.IDLE
        self._cancel_tokens: Set[threading.Event] = set()
        self._token_lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

    def start(self, source: VideoSource, interval_seconds: float, output_size: int) -> Future:
        """
        Run in the background; returns a Future resolving to the RunSummary.

        The run can be cancelled as soon as start() returns, even before the
        background thread picks it up.
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="PipelineRun")
        token = self._new_cancel_token()
        return self._executor.submit(self._run_with_token, token, source, interval_seconds, output_size)

    def cancel(self) -> None:
        """Request cancellation of every started run at its next frame boundary."""
        if self.state.running:
            logging.info("Pipeline cancellation requested")
        with self._token_lock:
            tokens = list(self._cancel_tokens)
        for token in tokens:
            token.set()

    def run(self, source: VideoSource, interval_seconds: float, output_size: int) -> RunSummary:
        """
        Process one video.

        Raises:
            ModelNotReadyError: If the inference channel is not ready. No work is done.
            RuntimeError: If another run is already in progress on this engine.
        """
        return self._run_with_token(self._new_cancel_token(), source, interval_seconds, output_size)

    def _new_cancel_token(self) -> threading.Event:
        token = threading.Event()
        with self._token_lock:
            self._cancel_tokens.add(token)
        return token

    def _run_with_token(
        self,
        token: threading.Event,
        source: VideoSource,
        interval_seconds: float,
        output_size: int,
    ) -> RunSummary:
        try:
            if not self.channel.ready:
                raise ModelNotReadyError("Inference model is not ready; initialize the channel first")
            if not self._run_lock.acquire(blocking=False):
                raise RuntimeError("A run is already in progress")

            try:
                return self._run(token, source, interval_seconds, output_size)
            finally:
                self.state.running = False
                self._run_lock.release()
        finally:
            with self._token_lock:
                self._cancel_tokens.discard(token)

    def _run(
        self,
        cancel_token: threading.Event,
        source: VideoSource,
        interval_seconds: float,
        output_size: int,
    ) -> RunSummary:
        self.state.reset()
        self.state.model_ready = True
        self.state.running = True
        self.run_state = RunState.RUNNING
        results: List[FrameResult] = []

        try:
            frames = plan(source.duration, interval_seconds)
        except Exception as e:
            logging.error(f"Error processing video: {e}")
            return self._finish(RunState.FAILED, results, e)

        self.state.total_frames = len(frames)
        logging.info(
            f"Processing {self.state.total_frames} frames from {source.source_id} "
            f"(duration={source.duration:.2f}s, interval={interval_seconds}s)"
        )

        for request in frames:
            if cancel_token.is_set():
                return self._finish(RunState.CANCELLED, results)
            try:
                result = self._process_frame(source, request, output_size)
                # A cancel that arrived mid-frame discards that frame's result.
                if cancel_token.is_set():
                    return self._finish(RunState.CANCELLED, results)
                self._record(result, results)
            except Exception as e:
                logging.error(
                    f"Frame {request.frame_index} at {request.timestamp_seconds:.2f}s failed: {e}"
                )
                return self._finish(RunState.FAILED, results, e)

        return self._finish(RunState.COMPLETED, results)

    def _process_frame(self, source: VideoSource, request: FrameRequest, output_size: int) -> FrameResult:
        """Capture, encode, submit and decode one frame."""
        logging.debug(f"Processing frame {request.frame_index} at time {request.timestamp_seconds}s")
        pixels = capture(source, request.timestamp_seconds, output_size, timeout=self.config.seek_timeout)
        tensor = encode(pixels, output_size, output_size)

        reply = self.channel.submit(tensor, correlation_id=request.frame_index)
        del tensor, pixels

        try:
            batch = reply.result(timeout=self.config.reply_timeout)
        except FutureTimeoutError:
            self.channel.abandon(request.frame_index)
            raise InferenceTimeoutError(
                request.frame_index, f"no reply within {self.config.reply_timeout}s"
            ) from None

        return FrameResult.from_request(request, decode(batch.output))

    def _record(self, result: FrameResult, results: List[FrameResult]) -> None:
        self.sink.add_result(result)
        results.append(result)
        self.state.completed_frames += 1
        self.sink.update_progress(self.state.progress)

    def _finish(
        self,
        run_state: RunState,
        results: List[FrameResult],
        error: Optional[BaseException] = None,
    ) -> RunSummary:
        self.run_state = run_state
        self.state.running = False
        summary = RunSummary(
            state=run_state,
            total_frames=self.state.total_frames,
            completed_frames=self.state.completed_frames,
            results=list(results),
            error=error,
        )
        logging.info(
            f"Video processing {run_state.value}: "
            f"{summary.completed_frames}/{summary.total_frames} frames"
        )
        return summary

    def close(self) -> None:
        """Release the background executor used by start()."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


def create_engine_from_config(
    config: Dict[str, Any],
    channel: InferenceChannel,
    sink: ResultSink,
) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the config dict.

    Args:
        config: Full application config dict.
        channel: InferenceChannel the engine submits to.
        sink: Destination for results and progress.
    """
    sampling_cfg = config.get("sampling", {}) or {}
    inference_cfg = config.get("inference", {}) or {}
    pipeline_config = PipelineConfig(
        seek_timeout=sampling_cfg.get("seek_timeout", 10.0),
        reply_timeout=inference_cfg.get("reply_timeout"),
    )
    return PipelineEngine(channel, sink, pipeline_config)

"""
Tests for the pipeline engine.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from errors import (
    InferenceError,
    InferenceTimeoutError,
    InvalidDurationError,
    MalformedOutputError,
    ModelNotReadyError,
    SeekTimeoutError,
)
from inference.channel import InferenceChannel
from inference.transport import ThreadTransport
from inference.worker import InferenceWorker
from models.detection import Detection
from models.state import RunState
from pipeline.engine import PipelineConfig, PipelineEngine, create_engine_from_config
from pipeline.sinks import MemorySink

SCENARIO_OUTPUT = np.array([10, 20, 30, 40, 0.9, 1, 5, 5, 5, 5, 0.2, 2], dtype=np.float32)


class MockEngine:
    """Mock inference engine returning a fixed output and recording calls."""

    def __init__(self, output=SCENARIO_OUTPUT, fail_on_call=None, hook=None):
        self.output = output
        self.fail_on_call = fail_on_call
        self.hook = hook
        self.calls = 0

    def run(self, tensor):
        call = self.calls
        self.calls += 1
        if self.hook is not None:
            self.hook(call)
        if call == self.fail_on_call:
            raise RuntimeError(f"inference crashed on call {call}")
        return self.output


def _ready_channel(engine):
    transport = ThreadTransport(InferenceWorker("model.onnx", lambda path: engine))
    channel = InferenceChannel(transport, poll_interval=0.02)
    channel.initialize().result(timeout=5)
    return channel


@pytest.fixture
def channels():
    opened = []

    def make(engine):
        channel = _ready_channel(engine)
        opened.append(channel)
        return channel

    yield make
    for channel in opened:
        channel.close()


class TestPipelineConfig:
    def test_default_values(self):
        config = PipelineConfig()
        assert config.seek_timeout == 10.0
        assert config.reply_timeout is None


class TestPipelineEngine:
    def test_three_second_scenario(self, channels, make_source):
        engine = MockEngine()
        sink = MemorySink()
        pipeline = PipelineEngine(channels(engine), sink)
        source = make_source(duration=3.0)

        summary = pipeline.run(source, interval_seconds=1.0, output_size=64)

        assert summary.state == RunState.COMPLETED
        assert summary.error is None
        assert summary.total_frames == 3
        assert summary.completed_frames == 3
        assert source.seeks == [0.0, 1.0, 2.0]
        assert [r.frame_index for r in sink.results] == [0, 1, 2]
        assert [r.timestamp_seconds for r in sink.results] == [0.0, 1.0, 2.0]
        assert sink.progress == pytest.approx([1 / 3, 2 / 3, 1.0])
        for result in sink.results:
            assert result.detections == [
                Detection(x=10, y=20, w=30, h=40, confidence=pytest.approx(0.9), class_id=1)
            ]
        assert summary.results == sink.results
        assert engine.calls == 3

    def test_model_not_ready(self, make_source):
        transport = ThreadTransport(InferenceWorker("model.onnx", lambda path: MockEngine()))
        channel = InferenceChannel(transport)
        pipeline = PipelineEngine(channel, MemorySink())
        source = make_source(duration=3.0)

        with pytest.raises(ModelNotReadyError):
            pipeline.run(source, interval_seconds=1.0, output_size=64)

        assert source.seeks == []
        assert pipeline.run_state == RunState.IDLE
        channel.close()

    def test_at_most_one_request_in_flight(self, channels, make_source):
        observed = []
        engine = MockEngine()
        channel = channels(engine)
        engine.hook = lambda call: observed.append(channel.submitted_count - channel.reply_count)

        class CheckingSink(MemorySink):
            def add_result(self, result):
                observed.append(channel.in_flight)
                super().add_result(result)

        pipeline = PipelineEngine(channel, CheckingSink())
        summary = pipeline.run(make_source(duration=6.0), interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.COMPLETED
        assert observed[0::2] == [1] * 6
        assert observed[1::2] == [0] * 6

    def test_inference_failure_is_fail_fast(self, channels, make_source):
        engine = MockEngine(fail_on_call=2)
        sink = MemorySink()
        pipeline = PipelineEngine(channels(engine), sink)
        source = make_source(duration=5.0)

        summary = pipeline.run(source, interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.FAILED
        assert isinstance(summary.error, InferenceError)
        assert summary.error.correlation_id == 2
        assert [r.frame_index for r in sink.results] == [0, 1]
        assert [r.frame_index for r in summary.results] == [0, 1]
        assert summary.completed_frames == 2
        assert summary.total_frames == 5
        assert source.seeks == [0.0, 1.0, 2.0]
        assert pipeline.run_state == RunState.FAILED

    def test_seek_timeout_is_fail_fast(self, channels, make_source):
        sink = MemorySink()
        pipeline = PipelineEngine(channels(MockEngine()), sink, PipelineConfig(seek_timeout=0.05))
        source = make_source(duration=4.0, hang_at={1.0})

        summary = pipeline.run(source, interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.FAILED
        assert isinstance(summary.error, SeekTimeoutError)
        assert [r.frame_index for r in sink.results] == [0]
        assert sink.progress == pytest.approx([0.25])

    def test_malformed_output_fails_run(self, channels, make_source):
        engine = MockEngine(output=np.zeros(7, dtype=np.float32))
        pipeline = PipelineEngine(channels(engine), MemorySink())

        summary = pipeline.run(make_source(duration=2.0), interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.FAILED
        assert isinstance(summary.error, MalformedOutputError)
        assert summary.results == []

    def test_invalid_duration_fails_before_any_frame(self, channels, make_source):
        engine = MockEngine()
        pipeline = PipelineEngine(channels(engine), MemorySink())
        source = make_source(duration=0.5)

        summary = pipeline.run(source, interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.FAILED
        assert isinstance(summary.error, InvalidDurationError)
        assert source.seeks == []
        assert engine.calls == 0

    def test_reply_timeout(self, channels, make_source):
        engine = MockEngine(hook=lambda call: time.sleep(0.3))
        channel = channels(engine)
        pipeline = PipelineEngine(channel, MemorySink(), PipelineConfig(reply_timeout=0.05))

        summary = pipeline.run(make_source(duration=2.0), interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.FAILED
        assert isinstance(summary.error, InferenceTimeoutError)
        assert summary.error.correlation_id == 0
        assert channel.in_flight == 0

    def test_cancel_at_frame_boundary(self, channels, make_source):
        engine = MockEngine()
        pipeline = None

        class CancellingSink(MemorySink):
            def add_result(self, result):
                super().add_result(result)
                pipeline.cancel()

        sink = CancellingSink()
        pipeline = PipelineEngine(channels(engine), sink)
        summary = pipeline.run(make_source(duration=5.0), interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.CANCELLED
        assert [r.frame_index for r in sink.results] == [0]
        assert summary.completed_frames == 1
        assert engine.calls == 1

    def test_cancel_mid_frame_discards_in_flight_result(self, channels, make_source):
        pipeline = None

        def hook(call):
            if call == 1:
                pipeline.cancel()

        engine = MockEngine(hook=hook)
        sink = MemorySink()
        pipeline = PipelineEngine(channels(engine), sink)
        summary = pipeline.run(make_source(duration=5.0), interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.CANCELLED
        assert engine.calls == 2
        assert [r.frame_index for r in sink.results] == [0]
        assert sink.progress == pytest.approx([0.2])

    def test_state_resets_between_runs(self, channels, make_source):
        sink = MemorySink()
        pipeline = PipelineEngine(channels(MockEngine()), sink)

        first = pipeline.run(make_source(duration=4.0), interval_seconds=1.0, output_size=32)
        assert first.completed_frames == 4
        sink.clear()

        second = pipeline.run(make_source(duration=2.0), interval_seconds=1.0, output_size=32)
        assert second.state == RunState.COMPLETED
        assert second.total_frames == 2
        assert [r.frame_index for r in second.results] == [0, 1]
        assert pipeline.state.model_ready is True
        assert pipeline.state.running is False

    def test_start_returns_future(self, channels, make_source):
        pipeline = PipelineEngine(channels(MockEngine()), MemorySink())
        future = pipeline.start(make_source(duration=3.0), interval_seconds=1.0, output_size=32)

        summary = future.result(timeout=5)

        assert summary.state == RunState.COMPLETED
        assert summary.completed_frames == 3
        pipeline.close()

    def test_cancel_right_after_start_is_not_lost(self, channels, make_source):
        engine = MockEngine()
        sink = MemorySink()
        pipeline = PipelineEngine(channels(engine), sink)
        gate = threading.Event()
        # Keep the single run thread busy so the run stays queued.
        pipeline._executor = ThreadPoolExecutor(max_workers=1)
        pipeline._executor.submit(gate.wait, 5)

        future = pipeline.start(make_source(duration=3.0), interval_seconds=1.0, output_size=32)
        pipeline.cancel()
        gate.set()
        summary = future.result(timeout=5)

        assert summary.state == RunState.CANCELLED
        assert summary.completed_frames == 0
        assert sink.results == []
        assert engine.calls == 0
        pipeline.close()

    def test_cancel_does_not_leak_into_next_run(self, channels, make_source):
        pipeline = PipelineEngine(channels(MockEngine()), MemorySink())
        pipeline.cancel()

        summary = pipeline.run(make_source(duration=2.0), interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.COMPLETED

    def test_sink_failure_fails_run(self, channels, make_source):
        class FullDiskSink(MemorySink):
            def add_result(self, result):
                if result.frame_index == 1:
                    raise OSError("disk full")
                super().add_result(result)

        sink = FullDiskSink()
        pipeline = PipelineEngine(channels(MockEngine()), sink)

        summary = pipeline.run(make_source(duration=3.0), interval_seconds=1.0, output_size=32)

        assert summary.state == RunState.FAILED
        assert isinstance(summary.error, OSError)
        assert [r.frame_index for r in summary.results] == [0]
        assert summary.completed_frames == 1
        assert pipeline.run_state == RunState.FAILED
        assert pipeline.state.running is False


class TestCreateEngineFromConfig:
    def test_creates_engine(self, valid_config, channels):
        valid_config["sampling"]["seek_timeout"] = 3.0
        valid_config["inference"]["reply_timeout"] = 20.0
        sink = MemorySink()

        engine = create_engine_from_config(valid_config, channels(MockEngine()), sink)

        assert engine.sink is sink
        assert engine.config.seek_timeout == 3.0
        assert engine.config.reply_timeout == 20.0
        assert engine.run_state == RunState.IDLE

"""
Transports carrying protocol messages between the channel and the worker.

ProcessTransport runs the worker in a spawned process so tensor computation
never competes with frame capture; the two sides share no memory and only
exchange pickled messages over multiprocessing queues. ThreadTransport runs
the same worker loop in a daemon thread for development and tests.
"""

from __future__ import annotations

import logging
import multiprocessing
import queue
import threading
from typing import Callable, Optional, Protocol

from .backend import InferenceEngine
from .worker import InferenceWorker, Message, serve


class Transport(Protocol):
    def start(self) -> None:
        ...

    def send(self, message: Message) -> None:
        ...

    def receive(self, timeout: float) -> Optional[Message]:
        ...

    def close(self) -> None:
        ...


class ThreadTransport:
    """In-process transport: the worker loop runs on a daemon thread."""

    def __init__(self, worker: InferenceWorker):
        self.worker = worker
        self._requests: "queue.Queue[Optional[Message]]" = queue.Queue()
        self._replies: "queue.Queue[Message]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self.sent_count = 0

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=serve,
            args=(self.worker, self._requests, self._replies),
            name="InferenceWorkerThread",
            daemon=True,
        )
        self._thread.start()

    def send(self, message: Message) -> None:
        self.sent_count += 1
        self._requests.put(message)

    def receive(self, timeout: float) -> Optional[Message]:
        try:
            return self._replies.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        if self._thread is None:
            return
        if self._thread.is_alive():
            self._requests.put(None)
            self._thread.join(timeout=5.0)
        self._thread = None


def _process_main(model_path: str, engine_factory: Callable[[str], InferenceEngine], requests, replies) -> None:
    serve(InferenceWorker(model_path, engine_factory), requests, replies)


class ProcessTransport:
    """
    Out-of-process transport backed by a spawned multiprocessing.Process.

    engine_factory must be picklable (a module-level function or a
    functools.partial of one).
    """

    def __init__(
        self,
        model_path: str,
        engine_factory: Callable[[str], InferenceEngine],
        join_timeout: float = 5.0,
    ):
        self.model_path = model_path
        self._engine_factory = engine_factory
        self._join_timeout = join_timeout
        self._ctx = multiprocessing.get_context("spawn")
        self._requests = self._ctx.Queue()
        self._replies = self._ctx.Queue()
        self._process: Optional[multiprocessing.process.BaseProcess] = None

    def start(self) -> None:
        if self._process is not None:
            return
        self._process = self._ctx.Process(
            target=_process_main,
            args=(self.model_path, self._engine_factory, self._requests, self._replies),
            name="InferenceWorkerProcess",
            daemon=True,
        )
        self._process.start()
        logging.info(f"Inference worker process started: pid={self._process.pid}")

    def send(self, message: Message) -> None:
        self._requests.put(message)

    def receive(self, timeout: float) -> Optional[Message]:
        try:
            return self._replies.get(timeout=timeout)
        except queue.Empty:
            if self._process is not None and not self._process.is_alive():
                raise EOFError(
                    f"Inference worker process exited with code {self._process.exitcode}"
                )
            return None

    def close(self) -> None:
        if self._process is None:
            return
        if self._process.is_alive():
            self._requests.put(None)
            self._process.join(timeout=self._join_timeout)
        if self._process.is_alive():
            logging.warning("Inference worker did not exit, terminating")
            self._process.terminate()
            self._process.join(timeout=self._join_timeout)
        self._process = None
        logging.info("Inference worker process stopped")

"""Bounded worker pool for accepted client sockets."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
ConnectionHandler = Callable[[Any, ClientAddress], None]

_STOP = object()


class ThreadPool:
    """Fixed number of worker threads fed from a bounded queue.

    ``submit`` never blocks: a full queue is reported to the caller so the
    accept loop can shed load instead of stalling. A handler that raises is
    logged and the worker moves on to the next connection.
    """

    def __init__(self, worker_count: int, queue_size: int, handler: ConnectionHandler) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._worker_count = worker_count
        self._pending: queue.Queue[Any] = queue.Queue(maxsize=queue_size)
        self._accepting = True
        self._workers: list[threading.Thread] = []
        self._outstanding = 0
        self._state = threading.Condition()

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._workers)

    def start(self) -> None:
        self._workers = [
            threading.Thread(target=self._serve, name=f"mock-worker-{index}", daemon=True)
            for index in range(self._worker_count)
        ]
        for worker in self._workers:
            worker.start()

    def submit(self, client_socket: Any, address: ClientAddress) -> bool:
        with self._state:
            if not self._accepting:
                return False
            try:
                self._pending.put_nowait((client_socket, address))
            except queue.Full:
                return False
            self._outstanding += 1
            return True

    def shutdown(self, *, drain_timeout: float = 0.0) -> None:
        """Stop accepting work, wait up to ``drain_timeout`` for queued jobs, then stop.

        Connections still queued when the wait runs out are closed unanswered.
        """
        with self._state:
            if not self._accepting:
                return
            self._accepting = False
            deadline = time.monotonic() + drain_timeout
            while self._outstanding:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._state.wait(timeout=min(remaining, 0.1))

        abandoned = self._discard_pending()
        if abandoned:
            logger.warning("closed %s queued connection(s) at shutdown", abandoned)

        for _ in self._workers:
            try:
                self._pending.put(_STOP, timeout=1.0)
            except queue.Full:
                break
        for worker in self._workers:
            worker.join(timeout=1.0)

    def _discard_pending(self) -> int:
        closed = 0
        while True:
            try:
                job = self._pending.get_nowait()
            except queue.Empty:
                return closed
            client_socket, _address = job
            close = getattr(client_socket, "close", None)
            if close is not None:
                try:
                    close()
                except OSError:
                    logger.debug("close failed for abandoned connection", exc_info=True)
            closed += 1
            self._finish()

    def _finish(self) -> None:
        with self._state:
            self._outstanding -= 1
            self._state.notify_all()

    def _serve(self) -> None:
        while True:
            job = self._pending.get()
            if job is _STOP:
                return
            client_socket, address = job
            try:
                self._handler(client_socket, address)
            except Exception:
                logger.exception("connection handler failed for %s", address[0])
            finally:
                self._finish()

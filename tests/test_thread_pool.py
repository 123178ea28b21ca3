"""Tests for the bounded worker pool."""

import threading

from thread_pool import ThreadPool


def test_thread_pool_starts_fixed_worker_count() -> None:
    pool = ThreadPool(worker_count=3, queue_size=4, handler=lambda _sock, _addr: None)
    pool.start()

    try:
        assert pool.worker_count == 3
        assert len(pool.threads) == 3
        assert all(thread.is_alive() for thread in pool.threads)
    finally:
        pool.shutdown()


def test_thread_pool_submit_returns_false_when_full() -> None:
    pool = ThreadPool(worker_count=1, queue_size=1, handler=lambda _sock, _addr: None)

    assert pool.submit(object(), ("127.0.0.1", 0)) is True
    assert pool.submit(object(), ("127.0.0.1", 1)) is False


def test_thread_pool_runs_submitted_jobs_and_drains() -> None:
    seen: list[int] = []
    lock = threading.Lock()

    def handler(_sock: object, address: tuple[str, int]) -> None:
        with lock:
            seen.append(address[1])

    pool = ThreadPool(worker_count=2, queue_size=10, handler=handler)
    pool.start()
    for port in range(5):
        assert pool.submit(object(), ("127.0.0.1", port))
    pool.shutdown(drain_timeout=2.0)

    assert sorted(seen) == [0, 1, 2, 3, 4]
    assert pool.submit(object(), ("127.0.0.1", 9)) is False


def test_thread_pool_rejects_invalid_sizes() -> None:
    for kwargs in ({"worker_count": 0, "queue_size": 1}, {"worker_count": 1, "queue_size": 0}):
        try:
            ThreadPool(handler=lambda _sock, _addr: None, **kwargs)
        except ValueError as exc:
            assert "must be positive" in str(exc)
        else:
            raise AssertionError("Expected ValueError for invalid pool size")


class _TrackedSocket:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_thread_pool_closes_connections_left_in_queue() -> None:
    pool = ThreadPool(worker_count=1, queue_size=2, handler=lambda _sock, _addr: None)
    queued = [_TrackedSocket(), _TrackedSocket()]
    for port, client in enumerate(queued):
        assert pool.submit(client, ("127.0.0.1", port))

    pool.shutdown(drain_timeout=0.05)

    assert all(client.closed for client in queued)


def test_thread_pool_worker_survives_handler_error(caplog) -> None:
    handled: list[int] = []
    done = threading.Event()

    def handler(_sock: object, address: tuple[str, int]) -> None:
        if address[1] == 0:
            raise ValueError("boom")
        handled.append(address[1])
        done.set()

    pool = ThreadPool(worker_count=1, queue_size=4, handler=handler)
    pool.start()
    try:
        assert pool.submit(object(), ("127.0.0.1", 0))
        assert pool.submit(object(), ("127.0.0.1", 1))
        assert done.wait(timeout=2.0)
    finally:
        pool.shutdown(drain_timeout=1.0)

    assert handled == [1]
    assert "connection handler failed" in caplog.text

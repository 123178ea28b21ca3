"""Thread-safe in-memory metrics for the mock server."""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable
from typing import Any

LATENCY_BUCKETS_MS = (5, 10, 25, 50, 100, 250, 500, 1000, 2000, 5000)


class DispatchMetrics:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_requests = 0
        self._bytes_sent_total = 0
        self._status_counts: Counter[str] = Counter()
        self._latency_buckets: Counter[str] = Counter()
        self._outcomes: Counter[str] = Counter()
        self._read_errors_by_type: Counter[str] = Counter()
        self._rejected_connections = 0

    def record_request(
        self,
        status_code: int,
        duration_ms: float,
        bytes_sent: int,
        *,
        outcome: str | None = None,
    ) -> None:
        with self._lock:
            self._total_requests += 1
            self._status_counts[str(status_code)] += 1
            self._bytes_sent_total += bytes_sent
            self._latency_buckets[self._bucket_label(duration_ms)] += 1
            if outcome is not None:
                self._outcomes[outcome] += 1

    def record_read_error(self, error_type: str) -> None:
        with self._lock:
            self._read_errors_by_type[error_type] += 1

    def record_rejected_connection(self) -> None:
        with self._lock:
            self._rejected_connections += 1

    def snapshot(self, backends: Iterable[Any] = ()) -> dict[str, Any]:
        """Return counters plus per-scenario hits of backends exposing ``hits()``."""
        with self._lock:
            data: dict[str, Any] = {
                "requests_total": self._total_requests,
                "bytes_sent_total": self._bytes_sent_total,
                "status_counts": dict(self._status_counts),
                "latency_ms_buckets": dict(self._latency_buckets),
                "dispatch_outcomes": dict(self._outcomes),
                "read_errors_by_type": dict(self._read_errors_by_type),
                "rejected_connections": self._rejected_connections,
            }
        data["scenario_hits"] = {
            backend.name: backend.hits() for backend in backends if hasattr(backend, "hits")
        }
        return data

    @staticmethod
    def _bucket_label(duration_ms: float) -> str:
        for upper in LATENCY_BUCKETS_MS:
            if duration_ms <= upper:
                return f"le_{upper}"
        return "gt_5000"

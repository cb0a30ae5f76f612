from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0
    error_count: int = 0

    def as_dict(self) -> dict[str, float | int]:
        avg = self.total_duration_ms / self.total_requests if self.total_requests else 0.0
        return {
            "total_requests": self.total_requests,
            "total_duration_ms": round(self.total_duration_ms, 2),
            "avg_duration_ms": round(avg, 2),
            "max_duration_ms": round(self.max_duration_ms, 2),
            "error_count": self.error_count,
        }


class InMemoryRequestMetrics:
    """Per-process request counters keyed by "METHOD route-template"."""

    def __init__(self) -> None:
        self._metrics: dict[str, EndpointMetric] = {}
        self._status_counts: dict[int, int] = {}
        self._lock = Lock()

    def observe(self, endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
        with self._lock:
            metric = self._metrics.setdefault(f"{method} {endpoint}", EndpointMetric())
            metric.total_requests += 1
            metric.total_duration_ms += duration_ms
            metric.max_duration_ms = max(metric.max_duration_ms, duration_ms)
            if status_code >= 400:
                metric.error_count += 1
            self._status_counts[status_code] = self._status_counts.get(status_code, 0) + 1

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {key: metric.as_dict() for key, metric in sorted(self._metrics.items())}

    def status_breakdown(self) -> dict[str, int]:
        with self._lock:
            return {str(code): count for code, count in sorted(self._status_counts.items())}

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._status_counts.clear()


request_metrics = InMemoryRequestMetrics()

"""
Request metrics collection.

Recording is O(1) under a lock: counters plus a bounded rolling window of
durations. Percentiles, memory and uptime are computed only when metrics
are read. The same events are mirrored into a Prometheus registry owned
by the collector.
"""
from __future__ import annotations

import math
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone

import psutil
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Histogram,
    generate_latest,
)
from prometheus_client import Counter as PromCounter

from app.config import get_logger

logger = get_logger("services.metrics")

_LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


def percentile(sorted_values: list[float], q: float) -> float:
    """Nearest-rank percentile of an already sorted list (0.0 when empty)."""
    if not sorted_values:
        return 0.0
    index = min(len(sorted_values) - 1, math.floor(len(sorted_values) * q))
    return sorted_values[index]


@dataclass(frozen=True)
class MetricsSnapshot:
    total_requests: int
    requests_by_method: dict[str, int]
    requests_by_status: dict[str, int]
    total_errors: int
    errors_by_type: dict[str, int]
    avg_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    sample_size: int
    memory: dict[str, int] = field(default_factory=dict)
    uptime_seconds: float = 0.0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class _PrometheusMirror:
    """Prometheus collectors registered on a private registry."""

    def __init__(self) -> None:
        self.registry = CollectorRegistry()
        self.requests = PromCounter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "status_class"],
            registry=self.registry,
        )
        self.latency = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency",
            ["method"],
            buckets=_LATENCY_BUCKETS,
            registry=self.registry,
        )
        self.errors = PromCounter(
            "http_request_errors_total",
            "HTTP requests that ended in a server error",
            ["error_type"],
            registry=self.registry,
        )


class MetricsCollector:
    """Thread-safe request counters and latency window."""

    def __init__(self, window_size: int = 10_000) -> None:
        self._lock = threading.Lock()
        self._window_size = window_size
        self._process = psutil.Process()
        self._started = time.monotonic()
        self._reset_state()

    def _reset_state(self) -> None:
        self._total = 0
        self._by_method: Counter[str] = Counter()
        self._by_status: Counter[str] = Counter()
        self._errors_total = 0
        self._errors_by_type: Counter[str] = Counter()
        self._durations: deque[float] = deque(maxlen=self._window_size)
        self._prometheus = _PrometheusMirror()

    # =========================================================================
    # Recording
    # =========================================================================

    def record_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        error_type: str | None = None,
    ) -> None:
        """
        Record one finished request.

        Responses with status >= 500 also count as errors, keyed by
        ``error_type`` (the exception class) or ``http_<status>``.
        """
        method = method.upper()
        status_class = f"{status_code // 100}xx"
        with self._lock:
            self._total += 1
            self._by_method[method] += 1
            self._by_status[status_class] += 1
            self._durations.append(duration_ms)
            prometheus = self._prometheus
        prometheus.requests.labels(method=method, status_class=status_class).inc()
        prometheus.latency.labels(method=method).observe(duration_ms / 1000)

        if status_code >= 500:
            self.record_error(error_type or f"http_{status_code}")

    def record_error(self, error_type: str) -> None:
        with self._lock:
            self._errors_total += 1
            self._errors_by_type[error_type] += 1
            prometheus = self._prometheus
        prometheus.errors.labels(error_type=error_type).inc()

    # =========================================================================
    # Reading
    # =========================================================================

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def get_metrics(self) -> MetricsSnapshot:
        with self._lock:
            durations = sorted(self._durations)
            snapshot = dict(
                total_requests=self._total,
                requests_by_method=dict(self._by_method),
                requests_by_status=dict(self._by_status),
                total_errors=self._errors_total,
                errors_by_type=dict(self._errors_by_type),
            )

        count = len(durations)
        return MetricsSnapshot(
            **snapshot,
            avg_ms=round(sum(durations) / count, 3) if count else 0.0,
            p50_ms=percentile(durations, 0.50),
            p95_ms=percentile(durations, 0.95),
            p99_ms=percentile(durations, 0.99),
            sample_size=count,
            memory=self._sample_memory(),
            uptime_seconds=round(self.uptime_seconds, 3),
        )

    def _sample_memory(self) -> dict[str, int]:
        try:
            info = self._process.memory_info()
        except psutil.Error as e:
            logger.warning("Memory sampling failed: %s", e)
            return {}
        return {"rss_bytes": info.rss, "vms_bytes": info.vms}

    def prometheus_exposition(self) -> tuple[bytes, str]:
        """Prometheus text exposition of the mirrored metrics."""
        with self._lock:
            registry = self._prometheus.registry
        return generate_latest(registry), CONTENT_TYPE_LATEST

    def reset_metrics(self) -> None:
        """Clear every counter and the latency window (uptime keeps running)."""
        with self._lock:
            self._reset_state()
        logger.info("Metrics reset")

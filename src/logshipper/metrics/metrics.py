"""
Shipper metrics collection.

Implements minimal Prometheus-compatible counters and a latency histogram
for the queue and the dispatcher.

Design goals:
- Zero global state; each hook owns its collector and isolated registry
- Callable from any producer thread (counters are guarded by a lock)
- Safe no-op exporters when metrics are disabled; in-memory counters are
  always kept so tests can assert on them
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Histogram


@dataclass
class ShipperMetrics:
    """Captured runtime counters for quick assertions in tests."""

    events_enqueued: int = 0
    events_dropped: int = 0
    batches_sent: int = 0
    events_sent: int = 0
    append_failures: int = 0


class MetricsCollector:
    """Hook-scoped metrics collector."""

    def __init__(self, *, enabled: bool = False) -> None:
        self._enabled = bool(enabled)
        self._lock = threading.Lock()
        self._state = ShipperMetrics()

        self._c_enqueued: Any | None = None
        self._c_dropped: Any | None = None
        self._c_batches: Any | None = None
        self._c_sent: Any | None = None
        self._c_failures: Any | None = None
        self._h_append_latency: Any | None = None
        self._registry: CollectorRegistry | None = None

        if self._enabled:
            # Isolated registry avoids duplicate registration across hooks
            self._registry = CollectorRegistry()
            self._c_enqueued = Counter(
                "logshipper_events_enqueued_total",
                "Events accepted into the event queue",
                registry=self._registry,
            )
            self._c_dropped = Counter(
                "logshipper_events_dropped_total",
                "Events dropped because the event queue was full",
                registry=self._registry,
            )
            self._c_batches = Counter(
                "logshipper_batches_sent_total",
                "Batches appended successfully",
                registry=self._registry,
            )
            self._c_sent = Counter(
                "logshipper_events_sent_total",
                "Events appended successfully",
                registry=self._registry,
            )
            self._c_failures = Counter(
                "logshipper_append_failures_total",
                "Failed append calls, labelled by error type",
                ["error_type"],
                registry=self._registry,
            )
            self._h_append_latency = Histogram(
                "logshipper_append_seconds",
                "Latency of append calls",
                buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
                registry=self._registry,
            )

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry | None:
        return self._registry

    def record_enqueued(self) -> None:
        with self._lock:
            self._state.events_enqueued += 1
        if self._c_enqueued is not None:
            self._c_enqueued.inc()

    def record_dropped(self) -> None:
        with self._lock:
            self._state.events_dropped += 1
        if self._c_dropped is not None:
            self._c_dropped.inc()

    def record_append_success(
        self, *, batch_size: int, latency_seconds: float | None = None
    ) -> None:
        with self._lock:
            self._state.batches_sent += 1
            self._state.events_sent += batch_size
        if self._c_batches is not None:
            self._c_batches.inc()
        if self._c_sent is not None:
            self._c_sent.inc(batch_size)
        if latency_seconds is not None and self._h_append_latency is not None:
            self._h_append_latency.observe(latency_seconds)

    def record_append_failure(
        self, *, error_type: str | None = None, latency_seconds: float | None = None
    ) -> None:
        with self._lock:
            self._state.append_failures += 1
        if self._c_failures is not None:
            self._c_failures.labels(error_type=error_type or "unknown").inc()
        if latency_seconds is not None and self._h_append_latency is not None:
            self._h_append_latency.observe(latency_seconds)

    def snapshot(self) -> ShipperMetrics:
        with self._lock:
            return replace(self._state)

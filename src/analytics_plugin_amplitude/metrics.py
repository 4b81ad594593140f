"""
Metrics collection for outbound Amplitude requests.

Provides hooks for emitting metrics about requests sent to the ingestion API.
Supports multiple backends: callback-based, in-memory, Prometheus.

Usage:
    from analytics_plugin_amplitude import amplitude
    from analytics_plugin_amplitude.metrics import InMemoryMetrics, MetricsCollector

    backend = InMemoryMetrics()
    plugin = amplitude({"apiKey": "token"}, metrics=MetricsCollector(backend))

    # Or with Prometheus (if prometheus_client installed)
    collector = MetricsCollector(PrometheusMetrics(prefix="amplitude"))
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MetricTags:
    """Common tags for request metrics."""

    endpoint: str | None = None
    status: str | None = None  # "success", "error", "transport_error"
    status_code: str | None = None

    def to_dict(self) -> dict[str, str]:
        """Convert to dict, excluding None values."""
        return {k: v for k, v in vars(self).items() if v is not None}


class MetricsBackend(ABC):
    """Abstract base class for metrics backends."""

    @abstractmethod
    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        """Increment a counter."""
        pass

    @abstractmethod
    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        """Record a timing in milliseconds."""
        pass


class NoopMetrics(MetricsBackend):
    """No-op metrics backend (default when metrics disabled)."""

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        pass


class CallbackMetrics(MetricsBackend):
    """
    Callback-based metrics backend.

    Usage:
        def my_callback(metric_type, name, value, tags):
            print(f"{metric_type}: {name}={value}")

        metrics = CallbackMetrics(callback=my_callback)
    """

    def __init__(
        self,
        callback: Callable[[str, str, float, dict[str, str] | None], None],
    ):
        self.callback = callback

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.callback("counter", name, float(value), tags)

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        self.callback("timing", name, value_ms, tags)


@dataclass
class InMemoryMetrics(MetricsBackend):
    """
    In-memory metrics backend for testing and debugging.

    Stores all metrics in memory for later inspection.
    """

    counters: dict[str, int] = field(default_factory=dict)
    timings: dict[str, list[float]] = field(default_factory=dict)

    def _key(self, name: str, tags: dict[str, str] | None) -> str:
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}{{{tag_str}}}"

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        key = self._key(name, tags)
        self.counters[key] = self.counters.get(key, 0) + value

    def timing(self, name: str, value_ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.setdefault(self._key(name, tags), []).append(value_ms)

    def reset(self) -> None:
        """Clear all stored metrics."""
        self.counters.clear()
        self.timings.clear()

    def get_counter(self, name: str, tags: dict[str, str] | None = None) -> int:
        """Get counter value."""
        return self.counters.get(self._key(name, tags), 0)

    def get_timing_values(self, name: str, tags: dict[str, str] | None = None) -> list[float]:
        """Get timing values."""
        return self.timings.get(self._key(name, tags), [])


class MetricsCollector:
    """
    Named metrics for the Amplitude HTTP client.

    Wraps a backend and provides the metric names the client emits.
    """

    REQUESTS = "requests_total"
    REQUEST_ERRORS = "request_errors_total"
    REQUEST_LATENCY = "request_latency_ms"
    EVENTS_SENT = "events_sent_total"

    def __init__(
        self,
        backend: MetricsBackend | None = None,
        prefix: str = "amplitude",
    ):
        """
        Initialize metrics collector.

        Args:
            backend: Metrics backend (defaults to NoopMetrics)
            prefix: Prefix for all metric names
        """
        self.backend = backend or NoopMetrics()
        self.prefix = prefix

    def _name(self, metric: str) -> str:
        """Get prefixed metric name."""
        return f"{self.prefix}_{metric}" if self.prefix else metric

    def record_request(
        self,
        endpoint: str,
        latency_seconds: float,
        status_code: int | None = None,
    ) -> None:
        """Record one completed request; ``status_code`` is None on transport failure."""
        if status_code is None:
            status = "transport_error"
        elif status_code == 200:
            status = "success"
        else:
            status = "error"
        tags = MetricTags(
            endpoint=endpoint,
            status=status,
            status_code=str(status_code) if status_code is not None else None,
        ).to_dict()

        self.backend.increment(self._name(self.REQUESTS), tags=tags)
        self.backend.timing(self._name(self.REQUEST_LATENCY), latency_seconds * 1000, tags=tags)
        if status != "success":
            self.backend.increment(self._name(self.REQUEST_ERRORS), tags=tags)

    def record_events_sent(self, count: int) -> None:
        """Record events accepted by Amplitude."""
        self.backend.increment(self._name(self.EVENTS_SENT), value=count)


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_seconds: float = 0

    def __enter__(self) -> TimingContext:
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed_seconds = time.perf_counter() - self.start_time


# Optional Prometheus integration
try:
    from prometheus_client import Counter, Histogram

    class PrometheusMetrics(MetricsBackend):
        """
        Prometheus metrics backend.

        Requires prometheus_client to be installed.
        """

        def __init__(self, prefix: str = "amplitude"):
            self.prefix = prefix
            self._counters: dict[str, Counter] = {}
            self._histograms: dict[str, Histogram] = {}

        def _get_counter(self, name: str, labels: list[str]) -> Counter:
            key = f"{self.prefix}_{name}"
            if key not in self._counters:
                self._counters[key] = Counter(key, f"{name} counter", labels)
            return self._counters[key]

        def _get_histogram(self, name: str, labels: list[str]) -> Histogram:
            key = f"{self.prefix}_{name}"
            if key not in self._histograms:
                self._histograms[key] = Histogram(key, f"{name} histogram", labels)
            return self._histograms[key]

        def increment(
            self, name: str, value: int = 1, tags: dict[str, str] | None = None
        ) -> None:
            labels = list(tags.keys()) if tags else []
            counter = self._get_counter(name, labels)
            if tags:
                counter.labels(**tags).inc(value)
            else:
                counter.inc(value)

        def timing(
            self, name: str, value_ms: float, tags: dict[str, str] | None = None
        ) -> None:
            labels = list(tags.keys()) if tags else []
            hist = self._get_histogram(name, labels)
            # Prometheus convention is seconds
            if tags:
                hist.labels(**tags).observe(value_ms / 1000)
            else:
                hist.observe(value_ms / 1000)

    PROMETHEUS_AVAILABLE = True
except ImportError:
    PROMETHEUS_AVAILABLE = False
    PrometheusMetrics = None  # type: ignore


def is_prometheus_available() -> bool:
    """Check if Prometheus client is available."""
    return PROMETHEUS_AVAILABLE

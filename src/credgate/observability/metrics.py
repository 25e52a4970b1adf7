"""credgate metrics collection.

Process-wide, thread-safe counters and histograms for the authentication
flows, the token engine and the cached repositories. Exported in Prometheus
text format so a host process can expose them however it likes.

Example:
    >>> from credgate.observability.metrics import get_metrics
    >>> metrics = get_metrics()
    >>> metrics.increment_counter("credgate_auth_attempts_total", {"method": "basic"})
    >>> metrics.observe_histogram("credgate_auth_duration_seconds", 0.041, {"method": "basic"})
    >>> print(metrics.export_prometheus())
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]

# Latency buckets in seconds; Argon2 verification dominates so the range is wide
DEFAULT_LATENCY_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


def _escape_label_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_labels(labels: LabelKey, extra: tuple[str, str] | None = None) -> str:
    pairs = [*labels, extra] if extra is not None else list(labels)
    if not pairs:
        return ""
    return "{" + ",".join(f'{k}="{_escape_label_value(v)}"' for k, v in pairs) + "}"


@dataclass
class Counter:
    """A monotonically increasing counter, one value per label set."""

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        key = _label_key(labels)
        with self._lock:
            self.values[key] = self.values.get(key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.values.get(_label_key(labels), 0.0)

    def total(self) -> float:
        with self._lock:
            return sum(self.values.values())

    def render(self) -> list[str]:
        with self._lock:
            snapshot = dict(self.values)
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} counter"]
        if not snapshot:
            lines.append(f"{self.name} 0")
        for key, value in snapshot.items():
            lines.append(f"{self.name}{_format_labels(key)} {value}")
        return lines

    def clear(self) -> None:
        with self._lock:
            self.values.clear()


@dataclass
class HistogramSeries:
    """Observations for one label set.

    Attributes:
        bucket_counts: Cumulative count per bucket bound (``value <= bound``)
        total: Sum of observed values
        count: Number of observations
    """

    bucket_counts: list[float]
    total: float = 0.0
    count: float = 0.0


@dataclass
class Histogram:
    """A histogram metric with fixed upper bounds."""

    name: str
    help_text: str
    buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    series: dict[LabelKey, HistogramSeries] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            data = self.series.get(key)
            if data is None:
                data = self.series[key] = HistogramSeries([0.0] * len(self.buckets))
            for index, bound in enumerate(self.buckets):
                if value <= bound:
                    data.bucket_counts[index] += 1.0
            data.total += value
            data.count += 1.0

    def get_count(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            data = self.series.get(_label_key(labels))
            return data.count if data is not None else 0.0

    def render(self) -> list[str]:
        with self._lock:
            snapshot = {
                key: HistogramSeries(list(data.bucket_counts), data.total, data.count)
                for key, data in self.series.items()
            }
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} histogram"]
        if not snapshot:
            lines.append(f"{self.name}_count 0")
            lines.append(f"{self.name}_sum 0")
        for key, data in snapshot.items():
            for bound, cumulative in zip(self.buckets, data.bucket_counts):
                le = _format_labels(key, ("le", str(bound)))
                lines.append(f"{self.name}_bucket{le} {cumulative}")
            lines.append(f"{self.name}_bucket{_format_labels(key, ('le', '+Inf'))} {data.count}")
            lines.append(f"{self.name}_sum{_format_labels(key)} {data.total}")
            lines.append(f"{self.name}_count{_format_labels(key)} {data.count}")
        return lines

    def clear(self) -> None:
        with self._lock:
            self.series.clear()


class MetricsCollector:
    """Registry of credgate counters and histograms.

    Updates to names that were never registered are ignored, so callers
    never fail because of a metrics typo.
    """

    DEFAULT_COUNTERS: ClassVar[dict[str, str]] = {
        "credgate_auth_attempts_total": "Total number of Basic authentication attempts",
        "credgate_auth_success_total": "Total number of successful Basic authentications",
        "credgate_auth_failures_total": "Total number of failed Basic authentications",
        "credgate_grant_requests_total": "Total number of client credentials token requests",
        "credgate_grant_errors_total": "Token requests rejected with an OAuth2 error",
        "credgate_token_issued_total": "Total number of access tokens issued",
        "credgate_introspection_total": "Total number of token introspection calls",
        "credgate_cache_hits_total": "Total number of credential cache hits",
        "credgate_cache_misses_total": "Total number of credential cache misses",
        "credgate_store_fetch_total": "Total number of secret store fetch attempts",
        "credgate_store_retries_total": "Total number of secret store retries",
        "credgate_store_failures_total": "Secret store calls abandoned after retries",
    }

    DEFAULT_HISTOGRAMS: ClassVar[dict[str, str]] = {
        "credgate_auth_duration_seconds": "Basic authentication duration in seconds",
        "credgate_grant_duration_seconds": "Client credentials grant duration in seconds",
    }

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start_time = time.time()
        self._counters: dict[str, Counter] = {
            name: Counter(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_COUNTERS.items()
        }
        self._histograms: dict[str, Histogram] = {
            name: Histogram(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_HISTOGRAMS.items()
        }

    def register_counter(self, name: str, help_text: str) -> None:
        with self._lock:
            self._counters.setdefault(name, Counter(name=name, help_text=help_text))

    def _counter(self, name: str) -> Counter | None:
        with self._lock:
            return self._counters.get(name)

    def _histogram(self, name: str) -> Histogram | None:
        with self._lock:
            return self._histograms.get(name)

    def increment_counter(
        self, name: str, labels: dict[str, str] | None = None, value: float = 1.0
    ) -> None:
        counter = self._counter(name)
        if counter is not None:
            counter.increment(labels, value)

    def observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        histogram = self._histogram(name)
        if histogram is not None:
            histogram.observe(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        counter = self._counter(name)
        return counter.get(labels) if counter is not None else 0.0

    def get_counter_total(self, name: str) -> float:
        """Sum of a counter across all label combinations."""
        counter = self._counter(name)
        return counter.total() if counter is not None else 0.0

    def get_histogram_count(self, name: str, labels: dict[str, str] | None = None) -> float:
        histogram = self._histogram(name)
        return histogram.get_count(labels) if histogram is not None else 0.0

    def export_prometheus(self) -> str:
        """Export all metrics in Prometheus text format."""
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())

        lines: list[str] = []
        for counter in counters:
            lines.extend(counter.render())
        for histogram in histograms:
            lines.extend(histogram.render())

        uptime = time.time() - self._start_time
        lines.append("# HELP credgate_process_uptime_seconds Time since collector creation")
        lines.append("# TYPE credgate_process_uptime_seconds gauge")
        lines.append(f"credgate_process_uptime_seconds {uptime:.3f}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Zero every metric, keeping registrations."""
        with self._lock:
            metrics: list[Counter | Histogram] = [
                *self._counters.values(),
                *self._histograms.values(),
            ]
        for metric in metrics:
            metric.clear()


_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Return the process-wide collector, creating it on first use."""
    global _metrics_collector
    if _metrics_collector is None:
        with _collector_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics() -> None:
    get_metrics().reset()

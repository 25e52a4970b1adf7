"""Tests for credgate metrics collection."""

import threading

from credgate.observability.metrics import (
    Counter,
    Histogram,
    MetricsCollector,
    get_metrics,
    reset_metrics,
)


class TestCounter:
    """Tests for Counter metric."""

    def test_counter_increment_default(self) -> None:
        counter = Counter(name="test_counter", help_text="Test counter")
        counter.increment()
        assert counter.get() == 1.0

    def test_counter_increment_with_labels(self) -> None:
        counter = Counter(name="test_counter", help_text="Test counter")
        counter.increment(labels={"reason": "user_not_found"})
        counter.increment(labels={"reason": "invalid_password"})
        counter.increment(labels={"reason": "user_not_found"})

        assert counter.get(labels={"reason": "user_not_found"}) == 2.0
        assert counter.get(labels={"reason": "invalid_password"}) == 1.0
        assert counter.get(labels={"reason": "account_disabled"}) == 0.0
        assert counter.total() == 3.0

    def test_label_order_does_not_matter(self) -> None:
        counter = Counter(name="test_counter", help_text="Test counter")
        counter.increment(labels={"method": "basic", "reason": "x"})

        assert counter.get(labels={"reason": "x", "method": "basic"}) == 1.0


class TestHistogram:
    """Tests for Histogram metric."""

    def test_histogram_observe_with_labels(self) -> None:
        histogram = Histogram(
            name="test_histogram",
            help_text="Test histogram",
            buckets=(0.1, 0.5, 1.0),
        )
        histogram.observe(0.25, labels={"method": "basic"})
        histogram.observe(0.75, labels={"method": "grant"})
        histogram.observe(0.15, labels={"method": "basic"})

        assert histogram.get_count(labels={"method": "basic"}) == 2.0
        assert histogram.get_count(labels={"method": "grant"}) == 1.0
        assert histogram.get_count(labels={"method": "missing"}) == 0.0

    def test_histogram_bucket_distribution(self) -> None:
        histogram = Histogram(
            name="test_histogram",
            help_text="Test histogram",
            buckets=(0.1, 0.5, 1.0),
        )
        histogram.observe(0.05)
        histogram.observe(0.25)
        histogram.observe(2.0)

        data = histogram.series[()]
        assert data.count == 3.0
        assert abs(data.total - 2.3) < 1e-9
        assert data.bucket_counts == [1.0, 2.0, 2.0]


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_collector_has_default_metrics(self) -> None:
        collector = MetricsCollector()

        for name in MetricsCollector.DEFAULT_COUNTERS:
            assert collector.get_counter(name) == 0.0
        assert "credgate_auth_duration_seconds" in collector._histograms
        assert "credgate_grant_duration_seconds" in collector._histograms

    def test_unknown_metrics_are_ignored(self) -> None:
        collector = MetricsCollector()

        collector.increment_counter("credgate_not_registered_total")
        collector.observe_histogram("credgate_not_registered_seconds", 0.1)

        assert collector.get_counter("credgate_not_registered_total") == 0.0
        assert collector.get_histogram_count("credgate_not_registered_seconds") == 0.0

    def test_collector_register_custom_counter(self) -> None:
        collector = MetricsCollector()
        collector.register_counter("custom_counter", "Custom counter for testing")
        collector.increment_counter("custom_counter")

        assert collector.get_counter("custom_counter") == 1.0

    def test_collector_export_prometheus_format(self) -> None:
        collector = MetricsCollector()
        collector.increment_counter(
            "credgate_auth_failures_total",
            {"method": "basic", "reason": "invalid_password"},
        )
        collector.observe_histogram(
            "credgate_auth_duration_seconds", 0.042, {"method": "basic"}
        )

        output = collector.export_prometheus()

        assert "# HELP credgate_auth_failures_total" in output
        assert "# TYPE credgate_auth_failures_total counter" in output
        assert (
            'credgate_auth_failures_total{method="basic",reason="invalid_password"} 1'
            in output
        )
        assert "# TYPE credgate_auth_duration_seconds histogram" in output
        assert 'credgate_auth_duration_seconds_bucket{method="basic",le="0.05"} 1.0' in output
        assert 'credgate_auth_duration_seconds_bucket{method="basic",le="+Inf"} 1.0' in output
        assert 'credgate_auth_duration_seconds_count{method="basic"} 1.0' in output
        assert "credgate_process_uptime_seconds" in output

    def test_exported_buckets_are_cumulative(self) -> None:
        collector = MetricsCollector()
        collector.observe_histogram("credgate_grant_duration_seconds", 0.003)
        collector.observe_histogram("credgate_grant_duration_seconds", 0.2)

        output = collector.export_prometheus()

        assert 'credgate_grant_duration_seconds_bucket{le="0.001"} 0.0' in output
        assert 'credgate_grant_duration_seconds_bucket{le="0.005"} 1.0' in output
        assert 'credgate_grant_duration_seconds_bucket{le="0.1"} 1.0' in output
        assert 'credgate_grant_duration_seconds_bucket{le="2.5"} 2.0' in output
        assert 'credgate_grant_duration_seconds_bucket{le="+Inf"} 2.0' in output

    def test_collector_export_empty_metrics(self) -> None:
        output = MetricsCollector().export_prometheus()

        assert "credgate_token_issued_total 0" in output
        assert "credgate_grant_duration_seconds_count 0" in output

    def test_label_values_escaped(self) -> None:
        collector = MetricsCollector()
        collector.increment_counter("credgate_grant_errors_total", {"error": 'a"b\\c'})

        assert 'error="a\\"b\\\\c"' in collector.export_prometheus()

    def test_collector_reset(self) -> None:
        collector = MetricsCollector()
        collector.increment_counter("credgate_cache_hits_total", {"repository": "users"})
        collector.observe_histogram("credgate_grant_duration_seconds", 0.1)

        collector.reset()

        assert collector.get_counter_total("credgate_cache_hits_total") == 0.0
        assert collector.get_histogram_count("credgate_grant_duration_seconds") == 0.0

    def test_collector_thread_safety(self) -> None:
        collector = MetricsCollector()
        num_threads = 10
        increments_per_thread = 100

        def increment_worker() -> None:
            for _ in range(increments_per_thread):
                collector.increment_counter("credgate_auth_attempts_total", {"method": "basic"})

        threads = [threading.Thread(target=increment_worker) for _ in range(num_threads)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        expected = num_threads * increments_per_thread
        labels = {"method": "basic"}
        assert collector.get_counter("credgate_auth_attempts_total", labels) == expected


class TestGlobalMetrics:
    def test_get_metrics_returns_singleton(self) -> None:
        assert get_metrics() is get_metrics()

    def test_reset_metrics_clears_data(self) -> None:
        metrics = get_metrics()
        metrics.increment_counter("credgate_token_issued_total")

        reset_metrics()

        assert metrics.get_counter("credgate_token_issued_total") == 0.0

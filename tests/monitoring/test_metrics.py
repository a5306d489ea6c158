"""Tests for Prometheus metrics."""

import urllib.error
import urllib.request

import pytest

from gasbump.monitoring.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricsServer,
    escalation_outcomes_total,
    generate_metrics,
    submissions_total,
)


class TestCounter:
    """Test Counter metric."""

    def test_counter_increment(self):
        """Test counter increment."""
        counter = Counter("test_counter", "Test counter")
        counter.inc()
        counter.inc(2)
        assert counter.get_all()[()] == 3

    def test_counter_with_labels(self):
        """Test counter with labels."""
        counter = Counter("test_counter", "Test counter", labels=["kind"])
        counter.inc(kind="initial")
        counter.inc(2, kind="replacement")
        values = counter.get_all()
        assert values[("initial",)] == 1
        assert values[("replacement",)] == 2

    def test_counter_rejects_unknown_labels(self):
        """Test label names must match the declared ones."""
        counter = Counter("test_counter", "Test counter", labels=["kind", "status"])
        with pytest.raises(ValueError):
            counter.inc(kind="initial")
        with pytest.raises(ValueError):
            counter.inc(kind="initial", status="accepted", extra="x")
        assert counter.get_all() == {}

    def test_counter_cannot_decrease(self):
        """Test negative increments are rejected."""
        with pytest.raises(ValueError):
            Counter("test_counter", "Test counter").inc(-1)

    def test_counter_prometheus_format(self):
        """Test Prometheus text format output."""
        counter = Counter("test_counter", "Test counter", labels=["outcome"])
        counter.inc(5, outcome="confirmed")
        output = counter.to_prometheus()
        assert "# HELP test_counter Test counter" in output
        assert "# TYPE test_counter counter" in output
        assert 'test_counter{outcome="confirmed"} 5' in output


class TestGauge:
    """Test Gauge metric."""

    def test_gauge_inc_dec(self):
        """Test gauge increment and decrement."""
        gauge = Gauge("test_gauge", "Test gauge")
        gauge.inc()
        gauge.inc(5)
        gauge.dec(3)
        assert gauge.get() == 3

    def test_gauge_prometheus_format(self):
        """Test Prometheus text format output."""
        gauge = Gauge("test_gauge", "Test gauge")
        gauge.inc(2)
        assert "test_gauge 2.0" in gauge.to_prometheus()


class TestHistogram:
    """Test Histogram metric."""

    def test_histogram_observe(self):
        """Test histogram observe."""
        histogram = Histogram("test_histogram", "Test histogram", buckets=(1, 2, 3))
        for value in (0.5, 1.5, 2.5):
            histogram.observe(value)
        assert histogram.count == 3
        assert histogram.sum == 4.5

    def test_histogram_prometheus_format(self):
        """Test Prometheus text format output."""
        histogram = Histogram("test_histogram", "Test histogram", buckets=(1, 3))
        histogram.observe(2)
        output = histogram.to_prometheus()
        assert '# TYPE test_histogram histogram' in output
        assert 'test_histogram_bucket{le="1"} 0' in output
        assert 'test_histogram_bucket{le="3"} 1' in output
        assert 'test_histogram_bucket{le="+Inf"} 1' in output
        assert "test_histogram_sum 2" in output
        assert "test_histogram_count 1" in output

    def test_empty_histogram_has_no_samples(self):
        """Test nothing but the header is exported before an observation."""
        histogram = Histogram("test_histogram", "Test histogram", buckets=(1,))
        assert histogram.to_prometheus().splitlines() == [
            "# HELP test_histogram Test histogram",
            "# TYPE test_histogram histogram",
        ]

    def test_buckets_are_cumulative(self):
        """Test each bucket counts every observation at or below its bound."""
        histogram = Histogram("test_histogram", "Test histogram", buckets=(3, 1))
        for value in (0, 1, 3, 4):
            histogram.observe(value)
        output = histogram.to_prometheus()
        assert 'test_histogram_bucket{le="1"} 2' in output
        assert 'test_histogram_bucket{le="3"} 3' in output
        assert 'test_histogram_bucket{le="+Inf"} 4' in output


class TestRegistry:
    """Test predefined metrics and export."""

    def test_generate_metrics(self):
        """Test all registered metrics are exported."""
        submissions_total.inc(kind="initial", status="accepted")
        escalation_outcomes_total.inc(outcome="confirmed")
        output = generate_metrics()
        assert "gasbump_submissions_total" in output
        assert "gasbump_escalation_outcomes_total" in output
        assert "gasbump_escalations_in_flight" in output


class TestMetricsServer:
    """Test metrics HTTP server."""

    def test_serves_metrics_and_health(self):
        """Test /metrics and /health endpoints."""
        server = MetricsServer(host="127.0.0.1", port=0)
        server.start()
        try:
            assert server.is_running
            base = f"http://127.0.0.1:{server.port}"
            with urllib.request.urlopen(f"{base}/health") as response:
                assert response.read() == b"OK"
            with urllib.request.urlopen(f"{base}/metrics") as response:
                assert b"gasbump_" in response.read()
            with pytest.raises(urllib.error.HTTPError) as exc_info:
                urllib.request.urlopen(f"{base}/missing")
            assert exc_info.value.code == 404
        finally:
            server.stop()
        assert not server.is_running

    def test_start_twice_is_noop(self):
        """Test starting a running server does nothing."""
        server = MetricsServer(host="127.0.0.1", port=0)
        server.start()
        port = server.port
        server.start()
        assert server.port == port
        server.stop()

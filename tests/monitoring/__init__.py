"""Tests for monitoring module."""


def test_monitoring_imports():
    """Test that monitoring module can be imported."""
    from gasbump.monitoring import MetricsServer, generate_metrics, submissions_total

    assert MetricsServer is not None
    assert generate_metrics is not None
    assert submissions_total is not None

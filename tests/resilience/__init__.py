"""Tests for resilience module."""


def test_resilience_imports():
    """Test that resilience module can be imported."""
    from gasbump.resilience import (
        RetryConfig,
        calculate_backoff,
        retry_with_backoff,
        with_backoff,
    )

    assert with_backoff is not None
    assert retry_with_backoff is not None
    assert RetryConfig is not None
    assert calculate_backoff is not None

"""Resilience layer for gasbump.

This module provides retry with exponential backoff for idempotent RPC reads.
"""

from .retry import RetryConfig, calculate_backoff, retry_with_backoff, with_backoff

__all__ = [
    "with_backoff",
    "retry_with_backoff",
    "RetryConfig",
    "calculate_backoff",
]

"""Monitoring module for gasbump.

This module provides:
- Prometheus metrics for RPC retries, submissions and escalation outcomes
- A small HTTP server exposing them
"""

from .metrics import (
    MetricsServer,
    escalation_outcomes_total,
    escalation_rounds,
    escalations_in_flight,
    generate_metrics,
    rpc_failures_total,
    rpc_retries_total,
    submissions_total,
)

__all__ = [
    "rpc_retries_total",
    "rpc_failures_total",
    "submissions_total",
    "escalation_outcomes_total",
    "escalation_rounds",
    "escalations_in_flight",
    "generate_metrics",
    "MetricsServer",
]

"""Monitoring and metrics instrumentation for the Structured Generation Layer.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from generation_layer.monitoring.metrics import (
    corrections_total,
    generation_attempts_total,
    generation_exhausted_total,
    llm_latency_seconds,
    llm_tokens_total,
    recovery_failures_total,
    recovery_strategy_total,
    retries_total,
    telemetry_dropped_total,
    telemetry_records_total,
)

__all__ = [
    "generation_attempts_total",
    "generation_exhausted_total",
    "retries_total",
    "recovery_failures_total",
    "recovery_strategy_total",
    "corrections_total",
    "llm_latency_seconds",
    "llm_tokens_total",
    "telemetry_records_total",
    "telemetry_dropped_total",
]

"""Monitoring and metrics instrumentation for job-mail inference.

Exports custom Prometheus metrics for operational monitoring and alerting.
"""

from jobmail_inference.monitoring.metrics import (
    cache_evictions_total,
    cache_requests_total,
    classifications_total,
    conflict_resolutions_total,
    duplicate_checks_total,
    fallback_total,
    inference_latency_seconds,
    inference_timeouts_total,
    llm_tokens_total,
    normalization_total,
    session_recycles_total,
)

__all__ = [
    "cache_evictions_total",
    "cache_requests_total",
    "classifications_total",
    "conflict_resolutions_total",
    "duplicate_checks_total",
    "fallback_total",
    "inference_latency_seconds",
    "inference_timeouts_total",
    "llm_tokens_total",
    "normalization_total",
    "session_recycles_total",
]

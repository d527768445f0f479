"""Custom Prometheus metrics for job-mail inference.

These metrics are exposed at /metrics endpoint and should be scraped by Prometheus.
Alert rules should be configured for:
- inference_timeouts_total (engine hanging past stage deadlines)
- fallback_total (rate of results not produced by the model)
- session_recycles_total{reason="unhealthy"} (engine handles going bad)
"""

from prometheus_client import Counter, Histogram

# === Inference Metrics ===

inference_latency_seconds = Histogram(
    "inference_latency_seconds",
    "Bounded inference call latency in seconds",
    ["stage", "outcome"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 3.0, 6.0, 10.0],
)
"""
Latency of one invoker call, measured until the race settles.

Labels:
- stage: stage1, stage2, match
- outcome: ok, timeout, error

Buckets bracket the default deadlines (3s / 6s).
"""

inference_timeouts_total = Counter(
    "inference_timeouts_total",
    "Inference calls abandoned at the deadline",
    ["stage"],
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total tokens consumed by model and type",
    ["model", "token_type"],
)

session_recycles_total = Counter(
    "session_recycles_total",
    "Sessions disposed and rebuilt by the pool",
    ["stage", "reason"],
)
"""
Labels:
- reason: max_uses, unhealthy, model_changed
"""

# === Pipeline Metrics ===

classifications_total = Counter(
    "classifications_total",
    "Classification results by decision path",
    ["decision_path", "is_job_related"],
)

fallback_total = Counter(
    "fallback_total",
    "Fallback classifier invocations by reason",
    ["reason"],
)
"""
Labels:
- reason: timeout, session_init, malformed, inference_error, overloaded, stage2_failed

Alert thresholds:
- WARN: fallback rate > 20% of classifications
"""

normalization_total = Counter(
    "normalization_total",
    "Response normalizer outcomes by recovery method",
    ["stage", "method"],
)

# === Cache Metrics ===

cache_requests_total = Counter(
    "cache_requests_total",
    "Tiered cache lookups by namespace and result",
    ["namespace", "result"],
)

cache_evictions_total = Counter(
    "cache_evictions_total",
    "Tiered cache removals by namespace and cause",
    ["namespace", "cause"],
)

# === Reconciliation Metrics ===

duplicate_checks_total = Counter(
    "duplicate_checks_total",
    "Duplicate detection runs by resulting risk level",
    ["risk"],
)

conflict_resolutions_total = Counter(
    "conflict_resolutions_total",
    "Field conflict resolutions by strategy",
    ["strategy", "requires_review"],
)

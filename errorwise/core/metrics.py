"""Prometheus metrics for the analysis core."""

from prometheus_client import Counter, Histogram, Info, generate_latest

# --- Metrics ---

APP_INFO = Info("errorwise", "ErrorWise analysis core info")
APP_INFO.info({"version": "1.0.0", "name": "errorwise"})

CACHE_LOOKUPS = Counter(
    "errorwise_cache_lookups_total",
    "Response cache lookups",
    ["result"],  # hit | miss | bypass
)

QUOTA_REJECTIONS = Counter(
    "errorwise_quota_rejections_total",
    "Requests rejected by the per-requester quota limiter",
    ["tier", "reason"],  # reason: concurrency | rate
)

PROVIDER_ATTEMPTS = Counter(
    "errorwise_provider_attempts_total",
    "Provider candidate outcomes",
    ["provider", "outcome"],  # success | skipped | provider_timeout | provider_call_error | invalid_response
)

ANALYSIS_RESULTS = Counter(
    "errorwise_analyses_total",
    "Completed analyses by terminal state",
    ["tier", "status"],  # success | cached | rejected | failed | invalid_input
)

ANALYSIS_DURATION = Histogram(
    "errorwise_analysis_duration_seconds",
    "Wall time of Orchestrator.analyze",
    ["tier"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60],
)


def record_cache_lookup(result: str) -> None:
    CACHE_LOOKUPS.labels(result=result).inc()


def record_quota_rejection(tier: str, reason: str) -> None:
    QUOTA_REJECTIONS.labels(tier=tier, reason=reason).inc()


def record_provider_attempt(provider: str, outcome: str) -> None:
    PROVIDER_ATTEMPTS.labels(provider=provider, outcome=outcome).inc()


def record_analysis(tier: str, status: str, duration: float | None = None) -> None:
    ANALYSIS_RESULTS.labels(tier=tier, status=status).inc()
    if duration is not None:
        ANALYSIS_DURATION.labels(tier=tier).observe(duration)


def metrics_payload() -> bytes:
    """Prometheus exposition text, served by the host application's /metrics route."""
    return generate_latest()

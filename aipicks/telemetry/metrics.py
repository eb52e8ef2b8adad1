"""
Prometheus metrics for provider ingestion and the daily prediction refresh.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- provider:     "football_data"
- endpoint:     "matches", "competitions", "teams"
- status_code:  "200", "400", "404", "429", "500", "0"
- result:       "ok", "missing_api_key", "fixtures_unavailable", "refresh_failed"
- outcome:      "ok", "fallback"

FORBIDDEN AS LABELS: team names, team/match IDs, URLs, dates.
"""

import logging

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# PROVIDER METRICS
# =============================================================================

provider_requests_total = Counter(
    "aipicks_provider_requests_total",
    "Total requests to the upstream data provider",
    ["provider", "endpoint", "status_code"],
)

provider_rate_limited_total = Counter(
    "aipicks_provider_rate_limited_total",
    "Requests answered with HTTP 429",
    ["provider"],
)

provider_timeouts_total = Counter(
    "aipicks_provider_timeouts_total",
    "Requests that timed out",
    ["provider"],
)

provider_latency_ms = Histogram(
    "aipicks_provider_latency_ms",
    "Upstream request latency in milliseconds",
    ["provider", "endpoint"],
    buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)

# =============================================================================
# REFRESH METRICS
# =============================================================================

refresh_runs_total = Counter(
    "aipicks_refresh_runs_total",
    "Daily cache refresh runs by result",
    ["result"],
)

refresh_duration_ms = Histogram(
    "aipicks_refresh_duration_ms",
    "Duration of a full cache refresh in milliseconds",
    buckets=[500, 1000, 5000, 15000, 30000, 60000, 120000, 300000],
)

fixture_outcomes_total = Counter(
    "aipicks_fixture_outcomes_total",
    "Per-fixture prediction outcomes",
    ["outcome"],
)


def record_provider_request(
    provider: str,
    endpoint: str,
    status_code: int,
    latency_ms: float,
    is_rate_limited: bool = False,
    is_timeout: bool = False,
) -> None:
    """Record a provider request with all associated metrics."""
    try:
        provider_requests_total.labels(
            provider=provider,
            endpoint=endpoint,
            status_code=str(status_code),
        ).inc()
        provider_latency_ms.labels(provider=provider, endpoint=endpoint).observe(latency_ms)

        if is_rate_limited:
            provider_rate_limited_total.labels(provider=provider).inc()
        if is_timeout:
            provider_timeouts_total.labels(provider=provider).inc()

    except Exception as e:
        logger.warning(f"Failed to record provider request metric: {e}")


def record_refresh(result: str, duration_ms: float) -> None:
    """Record a completed refresh run."""
    try:
        refresh_runs_total.labels(result=result).inc()
        refresh_duration_ms.observe(duration_ms)
    except Exception as e:
        logger.warning(f"Failed to record refresh metric: {e}")


def record_fixture_outcome(outcome: str) -> None:
    try:
        fixture_outcomes_total.labels(outcome=outcome).inc()
    except Exception as e:
        logger.warning(f"Failed to record fixture outcome metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST

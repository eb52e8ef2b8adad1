"""
Telemetry Module

Provides Prometheus metrics for:
- Provider ingestion (requests, rate limits, latency)
- Daily refresh runs and per-fixture outcomes

and Sentry error tracking (enabled by SENTRY_DSN).
"""

from aipicks.telemetry.metrics import (
    provider_requests_total,
    provider_rate_limited_total,
    provider_timeouts_total,
    provider_latency_ms,
    refresh_runs_total,
    refresh_duration_ms,
    fixture_outcomes_total,
    record_provider_request,
    record_refresh,
    record_fixture_outcome,
    get_metrics_text,
)

__all__ = [
    "provider_requests_total",
    "provider_rate_limited_total",
    "provider_timeouts_total",
    "provider_latency_ms",
    "refresh_runs_total",
    "refresh_duration_ms",
    "fixture_outcomes_total",
    "record_provider_request",
    "record_refresh",
    "record_fixture_outcome",
    "get_metrics_text",
]

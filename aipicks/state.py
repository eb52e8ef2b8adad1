"""Shared singletons for the AI Picks application.

Singleton-by-import pattern: main.py, the scheduler and routers import from
this module to share the same PredictionService and telemetry counters.
"""

# =============================================================================
# TELEMETRY COUNTERS (aggregated, no high-cardinality labels)
# =============================================================================
# Thread-safe via GIL for simple increments; no locks needed for counters.

_telemetry = {
    # Daily cache
    "today_cache_hit": 0,
    "today_cache_miss": 0,
    # Refresh
    "refresh_started": 0,
    "refresh_single_flight_join": 0,
    # Per-fixture outcomes
    "fixture_ok": 0,
    "fixture_fallback": 0,
    # Memoized lookups within a refresh
    "standings_memo_hit": 0,
    "form_memo_hit": 0,
}


def _incr(key: str) -> None:
    """Increment a telemetry counter."""
    _telemetry[key] = _telemetry.get(key, 0) + 1


def telemetry_snapshot() -> dict:
    return dict(_telemetry)


# =============================================================================
# PREDICTION SERVICE
# =============================================================================

_prediction_service = None


def get_prediction_service():
    """Process-wide PredictionService (created on first use)."""
    global _prediction_service
    if _prediction_service is None:
        from aipicks.etl.football_data import FootballDataProvider
        from aipicks.services.predictions import PredictionService

        _prediction_service = PredictionService(provider=FootballDataProvider())
    return _prediction_service

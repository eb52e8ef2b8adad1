"""Core routes: health, telemetry, metrics.

Auth per-endpoint:
- /health: public, rate limited
- /telemetry: public (aggregated counters only)
- /metrics: Bearer token when METRICS_BEARER_TOKEN is set
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from aipicks.config import get_settings
from aipicks.security import limiter, verify_bearer_token
from aipicks.services.predictions import PredictionService
from aipicks.state import get_prediction_service, telemetry_snapshot
from aipicks.telemetry import get_metrics_text

router = APIRouter(tags=["core"])
settings = get_settings()


class HealthResponse(BaseModel):
    status: str
    cache_date: Optional[str]
    cache_rows: int
    refresh_in_flight: bool


@router.get("/health", response_model=HealthResponse)
@limiter.limit("120/minute")
async def health_check(
    request: Request,
    service: PredictionService = Depends(get_prediction_service),
):
    """Health check endpoint."""
    snapshot = service.cache.get()
    return HealthResponse(
        status="ok",
        cache_date=snapshot.date,
        cache_rows=len(snapshot.rows),
        refresh_in_flight=service.refresh_in_flight,
    )


@router.get("/telemetry")
async def get_telemetry():
    """
    Aggregated telemetry counters for cache hit/miss monitoring.

    NOTE: Counters reset on restart. For persistent metrics, scrape /metrics.
    """
    counters = telemetry_snapshot()

    hits = counters["today_cache_hit"]
    total = hits + counters["today_cache_miss"]
    fixtures = counters["fixture_ok"] + counters["fixture_fallback"]

    return {
        "today_cache": {
            "hit": hits,
            "miss": counters["today_cache_miss"],
            "hit_rate": round(hits / total, 3) if total > 0 else 0,
        },
        "refresh": {
            "started": counters["refresh_started"],
            "single_flight_joins": counters["refresh_single_flight_join"],
        },
        "fixtures": {
            "ok": counters["fixture_ok"],
            "fallback": counters["fixture_fallback"],
            "fallback_rate": round(counters["fixture_fallback"] / fixtures, 3) if fixtures > 0 else 0,
        },
        "memo": {
            "standings_hit": counters["standings_memo_hit"],
            "form_hit": counters["form_memo_hit"],
        },
    }


@router.get("/metrics")
async def prometheus_metrics(
    authorization: str = Header(None, alias="Authorization"),
):
    """Prometheus metrics (provider requests, refresh runs, fixture outcomes)."""
    refused = verify_bearer_token(authorization, settings.METRICS_BEARER_TOKEN)
    if refused:
        return PlainTextResponse(
            content=f"# Unauthorized: {refused}\n",
            status_code=401,
            media_type="text/plain",
        )

    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)

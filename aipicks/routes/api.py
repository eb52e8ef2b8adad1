"""Prediction routes: today's rows and diagnostics."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from aipicks.config import get_settings
from aipicks.security import limiter
from aipicks.services.predictions import PredictionRow, PredictionService
from aipicks.state import get_prediction_service, telemetry_snapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["predictions"])
settings = get_settings()


class TodayResponse(BaseModel):
    date: Optional[str]
    rows: list[PredictionRow]
    saved_at: Optional[datetime] = None
    reason: Optional[str] = None
    stale: bool = False
    total_from_api: int = 0


@router.get("/api/today", response_model=TodayResponse)
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def get_today(
    request: Request,
    service: PredictionService = Depends(get_prediction_service),
):
    """
    Today's predictions (local timezone).

    Served from the daily cache; the first request after the date rolls
    over triggers a single refresh that concurrent requests share.
    """
    snapshot = await service.get_today()
    return TodayResponse(
        date=snapshot.date,
        rows=list(snapshot.rows),
        saved_at=snapshot.saved_at,
        reason=snapshot.reason,
        stale=snapshot.stale,
        total_from_api=snapshot.total_from_api,
    )


@router.get("/diag")
async def diagnostics(service: PredictionService = Depends(get_prediction_service)):
    """Operational diagnostics: window, cache state, last refresh, live fixture count."""
    info = await service.diagnostics()
    info["counters"] = telemetry_snapshot()
    return info

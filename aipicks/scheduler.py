"""Background scheduler for the daily prediction refresh."""

import logging
import os

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from aipicks.config import get_settings
from aipicks.state import get_prediction_service
from aipicks.telemetry.sentry import sentry_job_context

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()
_scheduler_started = False

REFRESH_JOB_ID = "daily_refresh"


async def daily_refresh() -> None:
    """Rebuild today's rows (single-flight with request-triggered refreshes)."""
    service = get_prediction_service()
    with sentry_job_context(REFRESH_JOB_ID):
        snapshot = await service.refresh()
    logger.info(
        f"[SCHEDULER] Daily refresh done: date={snapshot.date} rows={len(snapshot.rows)} "
        f"reason={snapshot.reason}"
    )


def start_scheduler() -> None:
    """
    Start the background scheduler.

    Uses a module-level flag to prevent duplicate scheduler instances
    when running with --reload.
    """
    global _scheduler_started

    if _scheduler_started:
        logger.warning("Scheduler already started, skipping duplicate initialization")
        return

    if os.environ.get("UVICORN_RELOADED"):
        logger.info("Skipping scheduler in reload subprocess")
        return

    settings = get_settings()

    scheduler.add_job(
        daily_refresh,
        trigger=CronTrigger(
            hour=settings.REFRESH_HOUR,
            minute=settings.REFRESH_MINUTE,
            timezone=settings.TZ,
        ),
        id=REFRESH_JOB_ID,
        name="Daily predictions refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )

    scheduler.start()
    _scheduler_started = True
    logger.info(
        f"[SCHEDULER] Started: daily refresh at "
        f"{settings.REFRESH_HOUR:02d}:{settings.REFRESH_MINUTE:02d} {settings.TZ}"
    )


def stop_scheduler() -> None:
    """Stop the background scheduler."""
    global _scheduler_started
    if scheduler.running:
        scheduler.shutdown(wait=False)
        _scheduler_started = False
        logger.info("Scheduler stopped")

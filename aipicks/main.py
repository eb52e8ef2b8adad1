"""FastAPI application for AI Picks.

Run with:
    uvicorn aipicks.main:app --host 0.0.0.0 --port $PORT
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from aipicks import __version__
from aipicks.config import get_settings
from aipicks.features.ratings import get_team_ratings
from aipicks.routes.api import router as api_router
from aipicks.routes.core import router as core_router
from aipicks.scheduler import start_scheduler, stop_scheduler
from aipicks.security import limiter
from aipicks.state import get_prediction_service
from aipicks.telemetry.sentry import init_sentry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking (before FastAPI app creation)
# Only activates if SENTRY_DSN is set in environment
init_sentry()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting AI Picks v{__version__} (tz={settings.TZ}, policy={settings.MARKET_POLICY})")

    ratings = get_team_ratings()
    logger.info(f"[STARTUP] Team ratings loaded: {len(ratings)} teams")

    service = get_prediction_service()
    if not settings.FOOTBALL_DATA_KEY:
        logger.warning("[STARTUP] FOOTBALL_DATA_KEY not set; /api/today will report missing_api_key")

    start_scheduler()

    # Warm the cache without blocking startup
    app.state.warm_task = asyncio.create_task(service.refresh())

    yield

    # Shutdown
    logger.info("Shutting down AI Picks...")
    stop_scheduler()
    warm_task = app.state.warm_task
    if not warm_task.done():
        warm_task.cancel()
    await service.close()


app = FastAPI(
    title="AI Picks",
    description="Daily football fixture predictions (1X2, Over/Under 2.5, BTTS)",
    version=__version__,
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Include routers
app.include_router(core_router)
app.include_router(api_router)

"""dontforget - household reminder notification engine."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.core.config import settings
from src.core.db_client import close_connection, init_db
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.location_feed import DeviceLocationFeed
from src.interface.notification_service import SchedulerNotificationService
from src.interface.reminder_router import router as reminder_router
from src.interface.webhook import router as webhook_router
from src.services.engine import NotificationEngine


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Validate credentials required by the enabled features.

    Raises:
        SystemExit: If a required credential is missing
    """
    logger.info("startup_validation_begin")
    try:
        if settings.enable_push_delivery and settings.is_production:
            settings.require_credential("expo_access_token", "Expo access token")
        logger.info("startup_validation_complete", extra={"status": "ok"})
    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    # Configure logging first so validation logs are captured
    configure_logfire()
    validate_startup_configuration()

    await init_db()
    logger.info("Database initialized")

    notification_service = SchedulerNotificationService()
    location_feed = DeviceLocationFeed()
    engine = NotificationEngine(notification_service, location_feed)

    notification_service.start()
    engine.start_session()
    await engine.rearm_pending()

    app.state.notification_service = notification_service
    app.state.location_feed = location_feed
    app.state.engine = engine
    yield
    # Shutdown
    await engine.end_session()
    notification_service.shutdown()
    await close_connection()


app = FastAPI(
    title="dontforget",
    description="Household reminder notification engine",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(webhook_router)
app.include_router(reminder_router)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint with engine state."""
    engine: NotificationEngine | None = getattr(app.state, "engine", None)
    if engine is None or not engine.active:
        return JSONResponse(content={"status": "starting"}, status_code=503)

    scheduled = await engine.notification_service.list_scheduled()
    return JSONResponse(
        content={
            "status": "healthy",
            "scheduled_notifications": len(scheduled),
            "tracking_sessions": len(engine.tracker.active_sessions),
        },
        status_code=200,
    )

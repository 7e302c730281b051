"""Device webhook endpoints.

Member devices report notification callbacks (received, user response),
position samples, location permission changes and push tokens here.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field

from src.core.logging import log_with_context
from src.domain.location import Position
from src.domain.notification import NotificationContent, UserAction
from src.interface.location_feed import DeviceLocationFeed
from src.models.service_models import DeliveryOutcome
from src.services import family_service
from src.services.engine import NotificationEngine


router = APIRouter(prefix="/devices", tags=["devices"])
logger = logging.getLogger(__name__)


class NotificationCallback(BaseModel):
    """A "notification received" callback relayed by a device."""

    handle: str = Field(..., description="Notification handle issued when it was scheduled")
    content: NotificationContent


class NotificationResponseCallback(NotificationCallback):
    """A member's action on a displayed notification."""

    action: UserAction


class LocationSample(BaseModel):
    """A position sample reported by a device."""

    member_id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0)
    recorded_at: datetime | None = None


class PermissionReport(BaseModel):
    """Location permission state reported by a device."""

    member_id: str
    granted: bool


class PushTokenReport(BaseModel):
    """Expo push token registered by a device."""

    member_id: str
    push_token: str | None = None


def get_engine(request: Request) -> NotificationEngine:
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Engine not started")
    return engine


def get_location_feed(request: Request) -> DeviceLocationFeed:
    feed = getattr(request.app.state, "location_feed", None)
    if feed is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Location feed not started")
    return feed


@router.post("/notifications/received")
async def notification_received(callback: NotificationCallback, request: Request) -> DeliveryOutcome:
    """Relay a device's "received" callback to the delivery handler.

    Redeliveries of an already processed handle come back as ``duplicate``.
    """
    engine = get_engine(request)
    return await engine.handler.on_received(callback.handle, callback.content)


@router.post("/notifications/response")
async def notification_response(callback: NotificationResponseCallback, request: Request) -> DeliveryOutcome:
    """Apply an acknowledge or snooze action."""
    engine = get_engine(request)
    return await engine.handler.on_user_response(callback.handle, callback.content, callback.action)


@router.post("/location")
async def report_location(sample: LocationSample, request: Request) -> dict[str, object]:
    """Feed a position sample to any active tracking session of the member."""
    feed = get_location_feed(request)
    position = Position(
        latitude=sample.latitude,
        longitude=sample.longitude,
        accuracy=sample.accuracy,
        recorded_at=sample.recorded_at or datetime.now(UTC),
    )
    delivered = await feed.publish(sample.member_id, position)
    log_with_context(logger, "debug", "Location sample received", member_id=sample.member_id, delivered=delivered)
    return {"status": "ok", "delivered": delivered}


@router.post("/location/permission")
async def report_location_permission(report: PermissionReport, request: Request) -> dict[str, str]:
    """Record whether the member granted location access."""
    feed = get_location_feed(request)
    feed.set_permission(report.member_id, granted=report.granted)
    return {"status": "ok"}


@router.post("/push-token")
async def register_push_token(report: PushTokenReport) -> dict[str, str]:
    """Store the member's Expo push token."""
    try:
        await family_service.update_push_token(member_id=report.member_id, push_token=report.push_token)
    except KeyError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found") from e
    log_with_context(logger, "info", "Push token registered", member_id=report.member_id)
    return {"status": "ok"}

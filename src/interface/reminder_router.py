"""Reminder endpoints: create, edit, complete and anchor capture."""

import logging

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel

from src.core.logging import log_with_reminder_context
from src.domain.create_models import ReminderCreate
from src.domain.reminder import Reminder
from src.domain.update_models import ReminderUpdate
from src.interface.webhook import get_engine
from src.models.service_models import ReminderMutation
from src.services import reminder_service


router = APIRouter(prefix="/reminders", tags=["reminders"])
logger = logging.getLogger(__name__)


class CompleteRequest(BaseModel):
    """Body of a completion request."""

    completed_by: str


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, PermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, KeyError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e.args[0]) if e.args else "Not found")
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_reminder(data: ReminderCreate, request: Request) -> ReminderMutation:
    engine = get_engine(request)
    try:
        mutation = await reminder_service.create_reminder(engine=engine, data=data)
    except (KeyError, ValueError, PermissionError) as e:
        raise _to_http_error(e) from e
    log_with_reminder_context(
        logger,
        "info",
        "Reminder created via API",
        mutation.reminder.id,
        scheduled=mutation.notification_handle is not None,
    )
    return mutation


@router.get("/{reminder_id}")
async def get_reminder(reminder_id: str) -> Reminder:
    reminder = await reminder_service.get_reminder(reminder_id=reminder_id)
    if reminder is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reminder not found")
    return reminder


@router.patch("/{reminder_id}")
async def edit_reminder(reminder_id: str, update: ReminderUpdate, request: Request) -> ReminderMutation:
    engine = get_engine(request)
    try:
        return await reminder_service.edit_reminder(engine=engine, reminder_id=reminder_id, update=update)
    except (KeyError, ValueError, PermissionError) as e:
        raise _to_http_error(e) from e


@router.post("/{reminder_id}/complete")
async def complete_reminder(reminder_id: str, body: CompleteRequest, request: Request) -> ReminderMutation:
    engine = get_engine(request)
    try:
        return await reminder_service.complete_reminder(
            engine=engine, reminder_id=reminder_id, completed_by=body.completed_by
        )
    except (KeyError, ValueError, PermissionError) as e:
        raise _to_http_error(e) from e


@router.post("/{reminder_id}/location")
async def capture_location(reminder_id: str, request: Request) -> Reminder:
    """Capture the assignee's current position as the movement anchor."""
    engine = get_engine(request)
    reminder = await reminder_service.capture_anchor_location(engine=engine, reminder_id=reminder_id)
    if reminder is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No position available for the assignee")
    return reminder

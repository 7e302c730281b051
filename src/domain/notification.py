"""Notification domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.family import MemberRole


class NotificationCategory(StrEnum):
    """Kind of notification, used for role-gated delivery."""

    DUE = "due"
    COMPLETION = "completion"
    MOVEMENT_ALERT = "movement_alert"


class UserAction(StrEnum):
    """Action a member took on a delivered notification."""

    ACKNOWLEDGE = "acknowledge"
    SNOOZE = "snooze"


class NotificationPayload(BaseModel):
    """Data embedded in every notification this system schedules."""

    reminder_id: str = Field(..., description="Reminder the notification concerns")
    category: str = Field(..., description="NotificationCategory value; unknown values are suppressed")
    recipient_id: str = Field(..., description="Member the notification is addressed to")
    is_recurring: bool = Field(default=False)
    generation: int | None = Field(
        default=None, description="Scheduler generation for the reminder when the notification was armed"
    )
    completed_by: str | None = Field(default=None, description="Completer member ID (completion only)")
    is_snooze: bool = Field(default=False, description="One-shot re-fire armed by a snooze")


class NotificationContent(BaseModel):
    """Displayable content plus payload handed to the notification service."""

    title: str
    body: str
    payload: NotificationPayload


class ScheduledNotification(BaseModel):
    """A pending delivery owned by the notification service."""

    handle: str
    content: NotificationContent
    fire_at: datetime | None = None


class NotificationEvent(BaseModel):
    """Transient view of a delivery, used for suppression decisions."""

    reminder_id: str
    category: str
    recipient_role: MemberRole
    delivered_at: datetime

"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, so callers (the
device webhook, the reminder router) can report what happened without
inspecting logs.
"""

from enum import StrEnum

from pydantic import BaseModel

from src.domain.reminder import Reminder


class DeliveryStatus(StrEnum):
    """Outcome of handling a delivered notification."""

    DELIVERED = "delivered"
    SUPPRESSED = "suppressed"
    DUPLICATE = "duplicate"
    STALE = "stale"
    RECIPIENT_UNAVAILABLE = "recipient_unavailable"
    REMINDER_COMPLETED = "reminder_completed"
    SNOOZED = "snoozed"
    ACKNOWLEDGED = "acknowledged"


class DeliveryOutcome(BaseModel):
    """What the delivery handler did with one notification callback."""

    handle: str
    reminder_id: str
    status: DeliveryStatus
    pushed: bool = False
    tracking_started: bool = False
    next_handle: str | None = None


class ReminderMutation(BaseModel):
    """A persisted reminder plus the notification side effects of the mutation.

    ``notification_handle`` is None when no due-notification will fire
    (past date, permission refused, service failure); the mutation itself
    still succeeded.
    """

    reminder: Reminder
    notification_handle: str | None = None
    completion_handles: list[str] = []

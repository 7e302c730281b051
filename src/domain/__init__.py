"""Domain models and DTOs."""

from src.domain.family import Family, Member, MemberRole
from src.domain.location import Position, TrackingSession
from src.domain.notification import (
    NotificationCategory,
    NotificationContent,
    NotificationEvent,
    NotificationPayload,
    ScheduledNotification,
    UserAction,
)
from src.domain.reminder import AnchorLocation, RecurrenceConfig, Reminder, ReminderStatus


__all__ = [
    "AnchorLocation",
    "Family",
    "Member",
    "MemberRole",
    "NotificationCategory",
    "NotificationContent",
    "NotificationEvent",
    "NotificationPayload",
    "Position",
    "RecurrenceConfig",
    "Reminder",
    "ReminderStatus",
    "ScheduledNotification",
    "TrackingSession",
    "UserAction",
]

"""Scheduling of due-date notifications for reminders.

Every reminder has a generation counter. ``reschedule`` and ``cancel`` bump
it before touching the notification service, and every due-notification
carries the generation it was armed under. A reschedule that loses a race
to a newer one (or to a cancel) detects the bump and backs off, and a
notification armed under an old generation is recognised as stale when it
fires.
"""

import logging
from datetime import datetime, timedelta

from src.core.clock import Clock, utc_now
from src.core.errors import classify_notification_error
from src.core.logging import span
from src.core.recurrence import next_occurrence
from src.domain.notification import (
    NotificationCategory,
    NotificationContent,
    NotificationPayload,
    ScheduledNotification,
)
from src.domain.reminder import Reminder
from src.interface.notification_service import NotificationService


logger = logging.getLogger(__name__)


def compute_fire_time(reminder: Reminder, *, now: datetime) -> datetime:
    """Return the instant the reminder's next due-notification should fire."""
    if reminder.is_recurring and reminder.recurrence_config is not None:
        config = reminder.recurrence_config
        return next_occurrence(config.start_date, config.selected_weekdays, config.week_frequency, now=now)
    return reminder.due_date


def build_due_content(
    reminder: Reminder,
    *,
    generation: int,
    assignee_name: str | None = None,
    snooze: bool = False,
) -> NotificationContent:
    """Compose the displayable due-notification for a reminder."""
    title = f"{assignee_name} don't forget 2 {reminder.title}" if assignee_name else f"Don't forget 2 {reminder.title}"
    return NotificationContent(
        title=title,
        body=f"It's time to {reminder.title.lower()}!",
        payload=NotificationPayload(
            reminder_id=reminder.id,
            category=NotificationCategory.DUE,
            recipient_id=reminder.assigned_to,
            is_recurring=reminder.is_recurring,
            generation=generation,
            is_snooze=snooze,
        ),
    )


class ReminderNotificationScheduler:
    """Arms, re-arms and cancels due-notifications for reminders."""

    def __init__(self, notification_service: NotificationService, *, clock: Clock = utc_now) -> None:
        self._service = notification_service
        self._clock = clock
        self._generations: dict[str, int] = {}

    def current_generation(self, reminder_id: str) -> int:
        return self._generations.get(reminder_id, 0)

    def is_current(self, payload: NotificationPayload) -> bool:
        """False when the notification was armed before a later reschedule or cancel."""
        if payload.generation is None:
            return True
        return payload.generation == self.current_generation(payload.reminder_id)

    def _bump_generation(self, reminder_id: str) -> int:
        generation = self.current_generation(reminder_id) + 1
        self._generations[reminder_id] = generation
        return generation

    async def schedule(self, reminder: Reminder, *, assignee_name: str | None = None) -> str | None:
        """Arm the next due-notification for a reminder.

        Past fire times are skipped silently and never reach the notification
        service. Permission refusal and service failures also return None.

        Returns:
            The notification handle, or None if no reminder will fire
        """
        return await self._schedule(
            reminder,
            generation=self.current_generation(reminder.id),
            assignee_name=assignee_name,
        )

    async def _schedule(self, reminder: Reminder, *, generation: int, assignee_name: str | None) -> str | None:
        with span("reminder_scheduler.schedule"):
            now = self._clock()
            fire_at = compute_fire_time(reminder, now=now)
            if fire_at <= now:
                logger.info(
                    "Due date is not in the future, skipping notification",
                    extra={"reminder_id": reminder.id, "fire_at": fire_at.isoformat()},
                )
                return None

            try:
                if not await self._service.has_permission():
                    logger.warning("No permission to schedule notification", extra={"reminder_id": reminder.id})
                    return None
                if generation != self.current_generation(reminder.id):
                    logger.info("Schedule superseded before arming", extra={"reminder_id": reminder.id})
                    return None

                content = build_due_content(reminder, generation=generation, assignee_name=assignee_name)
                handle = await self._service.schedule_at(fire_at=fire_at, content=content)
            except Exception as e:
                logger.error(
                    "Failed to schedule due notification",
                    extra={
                        "reminder_id": reminder.id,
                        "error": str(e),
                        "error_category": classify_notification_error(e).value,
                    },
                )
                return None

            if generation != self.current_generation(reminder.id):
                # A cancel or newer reschedule ran while we were arming
                await self._cancel_handles([handle], reminder_id=reminder.id)
                return None

            logger.info(
                "Scheduled due notification",
                extra={
                    "reminder_id": reminder.id,
                    "handle": handle,
                    "fire_at": fire_at.isoformat(),
                    "recurring": reminder.is_recurring,
                },
            )
            return handle

    async def reschedule(self, reminder: Reminder, *, assignee_name: str | None = None) -> str | None:
        """Replace any pending notification for the reminder with one reflecting its current fields.

        The cancel completes before the new notification is armed, so two
        live notifications never overlap. If the cancel fails nothing new is
        armed.
        """
        with span("reminder_scheduler.reschedule"):
            generation = self._bump_generation(reminder.id)
            try:
                await self._cancel_all(reminder.id)
            except Exception as e:
                logger.error(
                    "Failed to cancel existing notifications, not rescheduling",
                    extra={
                        "reminder_id": reminder.id,
                        "error": str(e),
                        "error_category": classify_notification_error(e).value,
                    },
                )
                return None

            if generation != self.current_generation(reminder.id):
                logger.info("Reschedule superseded by a newer request", extra={"reminder_id": reminder.id})
                return None

            return await self._schedule(reminder, generation=generation, assignee_name=assignee_name)

    async def cancel(self, reminder_id: str) -> None:
        """Cancel every pending notification for the reminder. Idempotent; never raises."""
        with span("reminder_scheduler.cancel"):
            self._bump_generation(reminder_id)
            try:
                cancelled = await self._cancel_all(reminder_id)
            except Exception as e:
                logger.warning(
                    "Failed to cancel notifications",
                    extra={
                        "reminder_id": reminder_id,
                        "error": str(e),
                        "error_category": classify_notification_error(e).value,
                    },
                )
                return
            logger.info("Cancelled reminder notifications", extra={"reminder_id": reminder_id, "count": cancelled})

    async def schedule_snooze(self, reminder: Reminder, *, delay: timedelta) -> str | None:
        """Arm a one-shot due-notification ``delay`` from now under the current generation."""
        with span("reminder_scheduler.schedule_snooze"):
            generation = self.current_generation(reminder.id)
            content = build_due_content(reminder, generation=generation, snooze=True)
            fire_at = self._clock() + delay
            try:
                return await self._service.schedule_at(fire_at=fire_at, content=content)
            except Exception as e:
                logger.error(
                    "Failed to schedule snoozed notification",
                    extra={
                        "reminder_id": reminder.id,
                        "error": str(e),
                        "error_category": classify_notification_error(e).value,
                    },
                )
                return None

    async def pending_for(self, reminder_id: str) -> list[ScheduledNotification]:
        """List notifications still scheduled for a reminder."""
        scheduled = await self._service.list_scheduled()
        return [item for item in scheduled if item.content.payload.reminder_id == reminder_id]

    async def _cancel_all(self, reminder_id: str) -> int:
        pending = await self.pending_for(reminder_id)
        await self._cancel_handles([item.handle for item in pending], reminder_id=reminder_id)
        return len(pending)

    async def _cancel_handles(self, handles: list[str], *, reminder_id: str) -> None:
        for handle in handles:
            await self._service.cancel(handle)
            logger.debug("Cancelled notification", extra={"reminder_id": reminder_id, "handle": handle})

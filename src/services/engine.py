"""Composition root for the notification core.

One engine owns the session-scoped state (duplicate guard, tracking
sessions, reschedule generations) and wires the scheduler, completion
dispatcher and delivery handler to a notification service and a location
provider.
"""

import logging
from datetime import datetime

from src.core.clock import Clock, utc_now
from src.core.logging import span
from src.domain.reminder import ReminderStatus
from src.interface.location_feed import LocationProvider
from src.interface.notification_service import NotificationService
from src.services import family_service, reminder_service
from src.services.completion_dispatcher import CompletionNotificationDispatcher
from src.services.delivery_handler import NotificationDeliveryHandler
from src.services.duplicate_guard import DuplicateDeliveryGuard
from src.services.location_tracking import LocationTrackingCoordinator
from src.services.reminder_scheduler import ReminderNotificationScheduler


logger = logging.getLogger(__name__)


class NotificationEngine:
    """Notification scheduling engine with an explicit session lifecycle."""

    def __init__(
        self,
        notification_service: NotificationService,
        location_provider: LocationProvider,
        *,
        clock: Clock = utc_now,
        push_enabled: bool | None = None,
        snooze_minutes: int | None = None,
    ) -> None:
        self.notification_service = notification_service
        self.location_provider = location_provider
        self._clock = clock

        self.guard = DuplicateDeliveryGuard()
        self.scheduler = ReminderNotificationScheduler(notification_service, clock=clock)
        self.dispatcher = CompletionNotificationDispatcher(notification_service, clock=clock)
        self.tracker = LocationTrackingCoordinator(location_provider, notification_service, clock=clock)
        self.handler = NotificationDeliveryHandler(
            guard=self.guard,
            scheduler=self.scheduler,
            tracker=self.tracker,
            clock=clock,
            push_enabled=push_enabled,
            snooze_minutes=snooze_minutes,
        )
        notification_service.add_received_listener(self.handler.on_received)
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def now(self) -> datetime:
        return self._clock()

    def start_session(self) -> None:
        """Begin a session with an empty seen-set."""
        self.guard.reset()
        self._active = True
        logger.info("Notification session started")

    async def end_session(self) -> None:
        """Stop every tracking session and forget seen notifications."""
        await self.tracker.stop_all()
        self.guard.reset()
        self._active = False
        logger.info("Notification session ended")

    async def rearm_pending(self) -> int:
        """Schedule the next due-notification of every pending reminder.

        Scheduled notifications live in memory, so a fresh process has none;
        call this after the session starts.

        Returns:
            Number of reminders that got a notification
        """
        with span("engine.rearm_pending"):
            reminders = await reminder_service.list_reminders(status=ReminderStatus.PENDING)
            armed = 0
            for reminder in reminders:
                if await self.scheduler.pending_for(reminder.id):
                    continue
                assignee = await family_service.get_member(member_id=reminder.assigned_to)
                handle = await self.scheduler.schedule(
                    reminder,
                    assignee_name=assignee.display_name if assignee and assignee.display_name else None,
                )
                if handle is not None:
                    armed += 1
            logger.info("Re-armed %d of %d pending reminders", armed, len(reminders))
            return armed

"""Handling of notification deliveries and member responses.

``on_received`` is registered as the notification service's received
listener and is also reachable from the device webhook (platforms redeliver
"received" callbacks, e.g. on app resume). ``on_user_response`` handles the
acknowledge/snooze actions a member takes on a displayed notification.
"""

import logging
from datetime import timedelta

from src.core.clock import Clock, utc_now
from src.core.config import settings
from src.core.logging import span
from src.domain.family import Member
from src.domain.notification import NotificationCategory, NotificationContent, NotificationEvent, UserAction
from src.domain.reminder import Reminder
from src.interface import push_sender
from src.models.service_models import DeliveryOutcome, DeliveryStatus
from src.services import family_service, reminder_service
from src.services.duplicate_guard import DuplicateDeliveryGuard
from src.services.location_tracking import LocationTrackingCoordinator
from src.services.notification_gate import should_deliver_event
from src.services.reminder_scheduler import ReminderNotificationScheduler


logger = logging.getLogger(__name__)


class NotificationDeliveryHandler:
    """Decides what happens when a notification fires or a member responds to one."""

    def __init__(
        self,
        *,
        guard: DuplicateDeliveryGuard,
        scheduler: ReminderNotificationScheduler,
        tracker: LocationTrackingCoordinator,
        clock: Clock = utc_now,
        push_enabled: bool | None = None,
        snooze_minutes: int | None = None,
    ) -> None:
        self._guard = guard
        self._scheduler = scheduler
        self._tracker = tracker
        self._clock = clock
        self._push_enabled = settings.enable_push_delivery if push_enabled is None else push_enabled
        self._snooze_delay = timedelta(minutes=snooze_minutes or settings.snooze_minutes)

    async def on_received(self, handle: str, content: NotificationContent) -> DeliveryOutcome:
        """Process one delivery callback.

        Order: duplicate guard, generation staleness, recipient lookup, (for
        due notifications) reminder lookup and recurring re-arm, role gate,
        push delivery, location tracking.
        """
        with span("delivery_handler.on_received"):
            payload = content.payload

            def outcome(status: DeliveryStatus, **fields: object) -> DeliveryOutcome:
                return DeliveryOutcome(handle=handle, reminder_id=payload.reminder_id, status=status, **fields)

            if not self._guard.should_process(handle):
                return outcome(DeliveryStatus.DUPLICATE)

            if not self._scheduler.is_current(payload):
                logger.info(
                    "Dropping notification superseded by a reschedule",
                    extra={"handle": handle, "reminder_id": payload.reminder_id, "generation": payload.generation},
                )
                return outcome(DeliveryStatus.STALE)

            recipient = await family_service.get_member(member_id=payload.recipient_id)
            if recipient is None:
                logger.warning(
                    "Recipient unavailable, dropping notification",
                    extra={"handle": handle, "recipient_id": payload.recipient_id},
                )
                return outcome(DeliveryStatus.RECIPIENT_UNAVAILABLE)

            reminder: Reminder | None = None
            next_handle: str | None = None
            if payload.category == NotificationCategory.DUE:
                reminder = await reminder_service.get_reminder(reminder_id=payload.reminder_id)
                if reminder is None:
                    return outcome(DeliveryStatus.RECIPIENT_UNAVAILABLE)
                if reminder.is_completed:
                    logger.info("Reminder already completed, dropping due notice", extra={"handle": handle})
                    return outcome(DeliveryStatus.REMINDER_COMPLETED)
                if reminder.is_recurring and not payload.is_snooze:
                    next_handle = await self._rearm(reminder, recipient=recipient)

            event = NotificationEvent(
                reminder_id=payload.reminder_id,
                category=payload.category,
                recipient_role=recipient.role,
                delivered_at=self._clock(),
            )
            if not should_deliver_event(event):
                logger.info(
                    "Notification suppressed for role",
                    extra={"handle": handle, "category": payload.category, "role": recipient.role},
                )
                return outcome(DeliveryStatus.SUPPRESSED, next_handle=next_handle)

            pushed = await self._push(recipient, content, handle=handle)

            tracking_started = False
            if reminder is not None and reminder.reminder_location is not None:
                tracking_started = await self._tracker.start_tracking(
                    reminder.id,
                    reminder.reminder_location,
                    member_id=reminder.assigned_to,
                    title=reminder.title,
                )

            return outcome(
                DeliveryStatus.DELIVERED,
                pushed=pushed,
                tracking_started=tracking_started,
                next_handle=next_handle,
            )

    async def on_user_response(
        self,
        handle: str,
        content: NotificationContent,
        action: UserAction | str,
    ) -> DeliveryOutcome:
        """Apply a member's response to a displayed notification.

        Snoozing bumps the reminder's snooze bookkeeping and re-fires the
        due-notification after the snooze delay; acknowledging is recorded in
        the logs only.

        Raises:
            ValueError: If the action is not a known UserAction
        """
        with span("delivery_handler.on_user_response"):
            payload = content.payload
            user_action = UserAction(action)

            def outcome(status: DeliveryStatus, **fields: object) -> DeliveryOutcome:
                return DeliveryOutcome(handle=handle, reminder_id=payload.reminder_id, status=status, **fields)

            if not self._guard.should_process(f"response:{handle}"):
                return outcome(DeliveryStatus.DUPLICATE)

            reminder = await reminder_service.get_reminder(reminder_id=payload.reminder_id)
            if reminder is None:
                return outcome(DeliveryStatus.RECIPIENT_UNAVAILABLE)
            if reminder.is_completed:
                logger.info("Ignoring response for completed reminder", extra={"reminder_id": reminder.id})
                return outcome(DeliveryStatus.REMINDER_COMPLETED)

            if user_action == UserAction.ACKNOWLEDGE:
                logger.info(
                    "Notification acknowledged",
                    extra={"handle": handle, "reminder_id": reminder.id, "member_id": payload.recipient_id},
                )
                return outcome(DeliveryStatus.ACKNOWLEDGED)

            snoozed = await reminder_service.record_snooze(reminder_id=reminder.id, snoozed_at=self._clock())
            if snoozed is None:
                return outcome(DeliveryStatus.RECIPIENT_UNAVAILABLE)

            snooze_handle = await self._scheduler.schedule_snooze(snoozed, delay=self._snooze_delay)
            logger.info(
                "Reminder snoozed",
                extra={"reminder_id": reminder.id, "snooze_count": snoozed.snooze_count, "handle": snooze_handle},
            )
            return outcome(DeliveryStatus.SNOOZED, next_handle=snooze_handle)

    async def _rearm(self, reminder: Reminder, *, recipient: Member) -> str | None:
        """Arm the next occurrence of a recurring reminder and stamp it as generated."""
        next_handle = await self._scheduler.schedule(reminder, assignee_name=recipient.display_name or None)
        if next_handle is not None:
            await reminder_service.mark_occurrence_generated(reminder=reminder, generated_at=self._clock())
        return next_handle

    async def _push(self, recipient: Member, content: NotificationContent, *, handle: str) -> bool:
        if not self._push_enabled or not recipient.push_token:
            return False

        result = await push_sender.send_push(to_token=recipient.push_token, content=content)
        if not result.success:
            logger.warning(
                "Push delivery failed",
                extra={"handle": handle, "member_id": recipient.id, "error": result.error},
            )
        return result.success

"""Fan-out of completion notifications to a family's guardians."""

import logging
from datetime import timedelta

from src.core import db_client
from src.core.clock import Clock, utc_now
from src.core.config import Constants
from src.core.errors import classify_notification_error
from src.core.logging import span
from src.domain.family import Family, Member, MemberRole
from src.domain.notification import NotificationCategory, NotificationContent, NotificationPayload
from src.domain.reminder import Reminder
from src.interface.notification_service import NotificationService
from src.services import family_service


logger = logging.getLogger(__name__)


def build_completion_content(reminder: Reminder, *, recipient_id: str, completer: Member) -> NotificationContent:
    """Compose the completion notice a guardian receives."""
    name = completer.display_name or "Someone"
    return NotificationContent(
        title="Reminder completed",
        body=f"{name} completed {reminder.title}",
        payload=NotificationPayload(
            reminder_id=reminder.id,
            category=NotificationCategory.COMPLETION,
            recipient_id=recipient_id,
            is_recurring=reminder.is_recurring,
            completed_by=completer.id,
        ),
    )


class CompletionNotificationDispatcher:
    """Schedules delayed completion notices for every current guardian of a reminder's family."""

    def __init__(
        self,
        notification_service: NotificationService,
        *,
        clock: Clock = utc_now,
        settling_delay: timedelta = timedelta(seconds=Constants.COMPLETION_SETTLING_DELAY_SECONDS),
    ) -> None:
        self._service = notification_service
        self._clock = clock
        self._settling_delay = settling_delay

    async def dispatch_completion(self, reminder: Reminder, *, completed_by: str) -> list[str]:
        """Schedule one completion notification per guardian.

        Only reminders created by a guardian notify anyone. Guardians are
        re-read at dispatch time and each must still be a parent of the
        reminder's family. Unresolvable records and per-recipient failures
        are skipped; this never raises.

        Args:
            reminder: The reminder that was just completed
            completed_by: Member ID of the completer

        Returns:
            Handles of the notifications that were scheduled
        """
        with span("completion_dispatcher.dispatch_completion"):
            try:
                resolved = await self._resolve_context(reminder, completed_by=completed_by)
            except db_client.DatabaseError as e:
                logger.error(
                    "Failed to resolve completion recipients",
                    extra={
                        "reminder_id": reminder.id,
                        "error": str(e),
                        "error_category": classify_notification_error(e).value,
                    },
                )
                return []
            if resolved is None:
                return []
            completer, family = resolved

            fire_at = self._clock() + self._settling_delay
            handles: list[str] = []
            for parent_id in family.parent_ids:
                try:
                    guardian = await family_service.get_member(member_id=parent_id)
                except db_client.DatabaseError as e:
                    logger.error(
                        "Failed to re-read guardian, skipping",
                        extra={
                            "reminder_id": reminder.id,
                            "member_id": parent_id,
                            "error": str(e),
                            "error_category": classify_notification_error(e).value,
                        },
                    )
                    continue
                if guardian is None or guardian.family_id != family.id or guardian.role != MemberRole.PARENT:
                    logger.info(
                        "Guardian no longer in family, skipping",
                        extra={"reminder_id": reminder.id, "member_id": parent_id},
                    )
                    continue

                content = build_completion_content(reminder, recipient_id=guardian.id, completer=completer)
                try:
                    handle = await self._service.schedule_at(fire_at=fire_at, content=content)
                except Exception as e:
                    logger.error(
                        "Failed to schedule completion notice",
                        extra={
                            "reminder_id": reminder.id,
                            "member_id": guardian.id,
                            "error": str(e),
                            "error_category": classify_notification_error(e).value,
                        },
                    )
                    continue
                handles.append(handle)

            logger.info(
                "Dispatched %d completion notices",
                len(handles),
                extra={"reminder_id": reminder.id, "completed_by": completed_by},
            )
            return handles

    async def _resolve_context(self, reminder: Reminder, *, completed_by: str) -> tuple[Member, Family] | None:
        """Look up the completer and family, or None when no notice should go out."""
        creator = await family_service.get_member(member_id=reminder.created_by)
        if creator is None or not creator.is_guardian:
            logger.info(
                "Reminder not created by a guardian, no completion notice",
                extra={"reminder_id": reminder.id, "created_by": reminder.created_by},
            )
            return None

        completer = await family_service.get_member(member_id=completed_by)
        if completer is None:
            logger.warning(
                "Completer not found, skipping completion notice",
                extra={"reminder_id": reminder.id, "completed_by": completed_by},
            )
            return None

        family = await family_service.get_family(family_id=reminder.family_id)
        if family is None:
            logger.warning(
                "Family not found, skipping completion notice",
                extra={"reminder_id": reminder.id, "family_id": reminder.family_id},
            )
            return None
        return completer, family

"""Reminder service for CRUD operations and their notification side effects.

Every mutation is written to the document store first. Scheduling,
completion fan-out and location capture run afterwards and only ever
degrade: a notification failure never fails or rolls back the mutation.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from src.core import db_client
from src.core.config import Constants
from src.core.errors import PermissionDeniedError, classify_notification_error
from src.core.logging import span
from src.core.recurrence import describe_recurrence
from src.domain.create_models import ReminderCreate
from src.domain.family import Member, MemberRole
from src.domain.reminder import Reminder, ReminderStatus
from src.domain.update_models import ReminderUpdate
from src.models.service_models import ReminderMutation
from src.services import family_service


if TYPE_CHECKING:
    from src.services.engine import NotificationEngine


logger = logging.getLogger(__name__)

REMINDERS_COLLECTION = "reminders"


def _to_reminder(record: dict[str, Any]) -> Reminder:
    return Reminder.model_validate(record)


async def get_reminder(*, reminder_id: str) -> Reminder | None:
    """Fetch a reminder by ID.

    Returns:
        The reminder, or None if it was deleted or its record is malformed
    """
    with span("reminder_service.get_reminder"):
        try:
            record = await db_client.get_record(collection=REMINDERS_COLLECTION, record_id=reminder_id)
        except KeyError:
            logger.info("Reminder not found: %s", reminder_id)
            return None
        try:
            return _to_reminder(record)
        except ValidationError as e:
            logger.error("Malformed reminder record %s: %s", reminder_id, e)
            return None


async def list_reminders(
    *,
    family_id: str | None = None,
    status: ReminderStatus | None = None,
) -> list[Reminder]:
    """List reminders, optionally restricted to a family and/or status.

    Malformed records are logged and skipped.
    """
    with span("reminder_service.list_reminders"):
        filters = []
        if family_id is not None:
            filters.append(f'family_id = "{db_client.sanitize_param(family_id)}"')
        if status is not None:
            filters.append(f'status = "{status}"')

        reminders = []
        page = 1
        while True:
            records = await db_client.list_records(
                collection=REMINDERS_COLLECTION,
                filter_query=" && ".join(filters),
                sort="created",
                per_page=Constants.DEFAULT_PER_PAGE_LIMIT,
                page=page,
            )
            for record in records:
                try:
                    reminders.append(_to_reminder(record))
                except ValidationError as e:
                    logger.error("Skipping malformed reminder record %s: %s", record.get("id"), e)
            # A short page means there are no more results
            if len(records) < Constants.DEFAULT_PER_PAGE_LIMIT:
                break
            page += 1
        return reminders


async def _require_family_member(*, member_id: str, family_id: str, label: str) -> Member:
    member = await family_service.get_member(member_id=member_id)
    if member is None:
        msg = f"{label} not found: {member_id}"
        raise KeyError(msg)
    if member.family_id != family_id:
        msg = f"{label} {member_id} does not belong to family {family_id}"
        raise ValueError(msg)
    return member


async def create_reminder(*, engine: "NotificationEngine", data: ReminderCreate) -> ReminderMutation:
    """Create a reminder and arm its first due-notification.

    Guardians may assign reminders to any family member; minors only to
    themselves.

    Args:
        engine: Notification engine driving scheduling and location capture
        data: Validated creation payload

    Returns:
        ReminderMutation with the persisted reminder and the notification handle (None if nothing will fire)

    Raises:
        KeyError: If the family, creator or assignee does not exist
        ValueError: If creator or assignee is not in the family
        PermissionError: If a minor assigns a reminder to someone else
        db_client.DatabaseError: If the database write fails
    """
    with span("reminder_service.create_reminder"):
        family = await family_service.get_family(family_id=data.family_id)
        if family is None:
            msg = f"Family not found: {data.family_id}"
            raise KeyError(msg)

        creator = await _require_family_member(member_id=data.created_by, family_id=family.id, label="Creator")
        assignee = await _require_family_member(member_id=data.assigned_to, family_id=family.id, label="Assignee")
        if creator.role == MemberRole.CHILD and assignee.id != creator.id:
            msg = "Children can only create reminders for themselves"
            raise PermissionError(msg)

        reminder_data = data.model_dump(mode="json", exclude={"capture_location"})
        reminder_data["status"] = ReminderStatus.PENDING
        reminder_data["snooze_count"] = 0
        record = await db_client.create_record(collection=REMINDERS_COLLECTION, data=reminder_data)
        reminder = _to_reminder(record)

        schedule = "once"
        if reminder.recurrence_config is not None:
            config = reminder.recurrence_config
            schedule = describe_recurrence(config.selected_weekdays, config.week_frequency, config.start_date)
        logger.info(
            "Created reminder '%s' for %s (%s)",
            reminder.title,
            reminder.assigned_to,
            schedule,
            extra={"reminder_id": reminder.id, "family_id": reminder.family_id},
        )

        if data.capture_location:
            reminder = await capture_anchor_location(engine=engine, reminder_id=reminder.id) or reminder

        handle = await engine.scheduler.schedule(reminder, assignee_name=assignee.display_name or None)
        return ReminderMutation(reminder=reminder, notification_handle=handle)


async def edit_reminder(
    *,
    engine: "NotificationEngine",
    reminder_id: str,
    update: ReminderUpdate,
) -> ReminderMutation:
    """Apply an edit to a pending reminder and reschedule its notification.

    Raises:
        KeyError: If the reminder (or a new assignee) does not exist
        ValueError: If the reminder is completed or the edit is invalid
        db_client.DatabaseError: If the database write fails
    """
    with span("reminder_service.edit_reminder"):
        current = await get_reminder(reminder_id=reminder_id)
        if current is None:
            msg = f"Reminder not found: {reminder_id}"
            raise KeyError(msg)
        if current.is_completed:
            msg = f"Reminder {reminder_id} is completed and can no longer be edited"
            raise ValueError(msg)

        changes = update.changes()
        if not changes:
            return ReminderMutation(reminder=current, notification_handle=None)

        if "assigned_to" in changes:
            await _require_family_member(
                member_id=str(changes["assigned_to"]), family_id=current.family_id, label="Assignee"
            )

        try:
            edited = Reminder.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            msg = f"Invalid reminder edit: {e}"
            raise ValueError(msg) from e

        record = await db_client.update_record(
            collection=REMINDERS_COLLECTION,
            record_id=reminder_id,
            data=edited.to_record(),
        )
        reminder = _to_reminder(record)
        logger.info("Edited reminder %s (fields: %s)", reminder_id, ", ".join(sorted(changes)))

        if reminder.assigned_to != current.assigned_to:
            # Any live session is watching the previous assignee's device
            await engine.tracker.stop_tracking(reminder_id)

        assignee = await family_service.get_member(member_id=reminder.assigned_to)
        handle = await engine.scheduler.reschedule(
            reminder,
            assignee_name=assignee.display_name if assignee and assignee.display_name else None,
        )
        return ReminderMutation(reminder=reminder, notification_handle=handle)


async def complete_reminder(
    *,
    engine: "NotificationEngine",
    reminder_id: str,
    completed_by: str,
    completed_at: datetime | None = None,
) -> ReminderMutation:
    """Mark a reminder completed, then wind down its notifications.

    Tracking stops, pending due-notifications are cancelled and guardians are
    notified (after the settling delay) when a guardian created the reminder.

    Raises:
        KeyError: If the reminder or completer does not exist
        ValueError: If the reminder is already completed or the completer is not in its family
        db_client.DatabaseError: If the database write fails
    """
    with span("reminder_service.complete_reminder"):
        current = await get_reminder(reminder_id=reminder_id)
        if current is None:
            msg = f"Reminder not found: {reminder_id}"
            raise KeyError(msg)
        if current.is_completed:
            msg = f"Reminder {reminder_id} is already completed"
            raise ValueError(msg)

        await _require_family_member(member_id=completed_by, family_id=current.family_id, label="Completer")

        record = await db_client.update_record(
            collection=REMINDERS_COLLECTION,
            record_id=reminder_id,
            data={
                "status": ReminderStatus.COMPLETED,
                "completed_at": (completed_at or engine.now()).isoformat(),
            },
        )
        reminder = _to_reminder(record)
        logger.info("Reminder %s completed by %s", reminder_id, completed_by)

        await engine.tracker.stop_tracking(reminder_id)
        await engine.scheduler.cancel(reminder_id)
        handles = await engine.dispatcher.dispatch_completion(reminder, completed_by=completed_by)
        return ReminderMutation(reminder=reminder, completion_handles=handles)


async def capture_anchor_location(*, engine: "NotificationEngine", reminder_id: str) -> Reminder | None:
    """Store the assignee's current position as the reminder's movement anchor.

    Missing permission or no position yet are logged and leave the reminder
    unchanged.

    Returns:
        The updated reminder, or None if no anchor was captured
    """
    with span("reminder_service.capture_anchor_location"):
        reminder = await get_reminder(reminder_id=reminder_id)
        if reminder is None:
            return None

        try:
            position = await engine.location_provider.get_current_position(reminder.assigned_to)
        except PermissionDeniedError:
            logger.info("Location permission denied, no anchor captured", extra={"reminder_id": reminder_id})
            return None
        except LookupError:
            logger.info("No device position available, no anchor captured", extra={"reminder_id": reminder_id})
            return None

        anchor = position.to_anchor()
        record = await db_client.update_record(
            collection=REMINDERS_COLLECTION,
            record_id=reminder_id,
            data={"reminder_location": anchor.model_dump(mode="json")},
        )
        logger.info("Captured anchor location", extra={"reminder_id": reminder_id})
        return _to_reminder(record)


async def record_snooze(*, reminder_id: str, snoozed_at: datetime) -> Reminder | None:
    """Increment the snooze counter and stamp the snooze time.

    A failed write is logged and the reminder is returned unchanged, so the
    snooze itself still goes ahead.

    Returns:
        The updated reminder, or None if it no longer exists
    """
    with span("reminder_service.record_snooze"):
        reminder = await get_reminder(reminder_id=reminder_id)
        if reminder is None:
            return None
        try:
            record = await db_client.update_record(
                collection=REMINDERS_COLLECTION,
                record_id=reminder_id,
                data={"snooze_count": reminder.snooze_count + 1, "last_snoozed_at": snoozed_at.isoformat()},
            )
        except KeyError:
            logger.info("Reminder deleted while snoozing: %s", reminder_id)
            return None
        except db_client.DatabaseError as e:
            logger.error(
                "Failed to record snooze",
                extra={
                    "reminder_id": reminder_id,
                    "error": str(e),
                    "error_category": classify_notification_error(e).value,
                },
            )
            return reminder
        return _to_reminder(record)


async def mark_occurrence_generated(*, reminder: Reminder, generated_at: datetime) -> None:
    """Stamp ``recurrence_config.last_generated_at`` after re-arming a recurring reminder."""
    if reminder.recurrence_config is None:
        return
    config = reminder.recurrence_config.model_copy(update={"last_generated_at": generated_at})
    try:
        await db_client.update_record(
            collection=REMINDERS_COLLECTION,
            record_id=reminder.id,
            data={"recurrence_config": config.model_dump(mode="json")},
        )
    except KeyError:
        logger.info("Reminder deleted before occurrence stamp: %s", reminder.id)
    except db_client.DatabaseError as e:
        logger.error(
            "Failed to stamp generated occurrence",
            extra={
                "reminder_id": reminder.id,
                "error": str(e),
                "error_category": classify_notification_error(e).value,
            },
        )

"""Unit tests for ReminderNotificationScheduler."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.domain.notification import NotificationCategory
from src.domain.reminder import Reminder
from src.services.reminder_scheduler import ReminderNotificationScheduler, build_due_content
from tests.unit.mocks import FIXED_NOW, FakeNotificationService, reminder_record


def make_reminder(**overrides) -> Reminder:
    return Reminder.model_validate({"id": "r1", **reminder_record(**overrides)})


def recurring_reminder(**overrides) -> Reminder:
    return make_reminder(
        is_recurring=True,
        recurrence_config={
            "selected_weekdays": [1, 3],
            "week_frequency": 2,
            "start_date": "2026-10-05T09:00:00Z",
        },
        **overrides,
    )


@pytest.fixture
def scheduler(notification_service, clock):
    return ReminderNotificationScheduler(notification_service, clock=clock)


@pytest.mark.unit
class TestSchedule:
    """Tests for schedule()."""

    async def test_future_due_date_is_scheduled(self, scheduler, notification_service):
        reminder = make_reminder()

        handle = await scheduler.schedule(reminder)

        assert handle is not None
        item = notification_service.scheduled[handle]
        assert item.fire_at == reminder.due_date
        assert item.content.payload.reminder_id == "r1"
        assert item.content.payload.category == NotificationCategory.DUE
        assert item.content.payload.recipient_id == "kid"
        assert item.content.payload.generation == 0
        assert item.content.payload.is_recurring is False

    async def test_past_due_date_never_reaches_service(self, scheduler, notification_service):
        reminder = make_reminder(due_date=(FIXED_NOW - timedelta(minutes=1)).isoformat())

        assert await scheduler.schedule(reminder) is None
        assert notification_service.schedule_calls == []
        assert notification_service.permission_checks == 0

    async def test_due_exactly_now_is_skipped(self, scheduler, notification_service):
        reminder = make_reminder(due_date=FIXED_NOW.isoformat())

        assert await scheduler.schedule(reminder) is None
        assert notification_service.schedule_calls == []

    async def test_permission_denied_returns_none(self, clock):
        service = FakeNotificationService(permission=False)
        scheduler = ReminderNotificationScheduler(service, clock=clock)

        assert await scheduler.schedule(make_reminder()) is None
        assert service.schedule_calls == []

    async def test_service_failure_returns_none(self, scheduler, notification_service):
        notification_service.fail_all = True

        assert await scheduler.schedule(make_reminder()) is None

    async def test_recurring_uses_next_occurrence(self, scheduler, notification_service):
        handle = await scheduler.schedule(recurring_reminder())

        item = notification_service.scheduled[handle]
        # Tuesday of week two: next aligned day is the Monday of week three
        assert item.fire_at == datetime(2026, 10, 19, 9, 0, tzinfo=UTC)
        assert item.content.payload.is_recurring is True

    async def test_recurring_ignores_stale_due_date(self, scheduler):
        reminder = recurring_reminder(due_date=(FIXED_NOW - timedelta(days=30)).isoformat())

        assert await scheduler.schedule(reminder) is not None

    async def test_assignee_name_in_title(self, scheduler, notification_service):
        handle = await scheduler.schedule(make_reminder(), assignee_name="Sam")

        content = notification_service.scheduled[handle].content
        assert content.title == "Sam don't forget 2 Feed the cat"
        assert content.body == "It's time to feed the cat!"


@pytest.mark.unit
class TestCancel:
    """Tests for cancel()."""

    async def test_cancel_twice_is_safe(self, scheduler, notification_service):
        await scheduler.schedule(make_reminder())

        await scheduler.cancel("r1")
        await scheduler.cancel("r1")

        assert notification_service.for_reminder("r1") == []

    async def test_cancel_unknown_reminder(self, scheduler, notification_service):
        await scheduler.cancel("missing")

        assert notification_service.cancelled == []

    async def test_cancel_leaves_other_reminders(self, scheduler, notification_service):
        await scheduler.schedule(make_reminder())
        other = Reminder.model_validate({"id": "r2", **reminder_record()})
        await scheduler.schedule(other)

        await scheduler.cancel("r1")

        assert len(notification_service.for_reminder("r2")) == 1

    async def test_cancel_marks_in_flight_notifications_stale(self, scheduler, notification_service):
        handle = await scheduler.schedule(make_reminder())
        payload = notification_service.scheduled[handle].content.payload

        await scheduler.cancel("r1")

        assert scheduler.is_current(payload) is False

    async def test_cancel_swallows_service_errors(self, scheduler, notification_service):
        await scheduler.schedule(make_reminder())
        notification_service.list_scheduled = AsyncMock(side_effect=ConnectionError("down"))

        await scheduler.cancel("r1")


@pytest.mark.unit
class TestReschedule:
    """Tests for reschedule()."""

    async def test_replaces_existing_notification(self, scheduler, notification_service):
        old_handle = await scheduler.schedule(make_reminder())
        edited = make_reminder(due_date=(FIXED_NOW + timedelta(days=1)).isoformat(), title="Walk the dog")

        new_handle = await scheduler.reschedule(edited)

        assert new_handle is not None
        assert old_handle in notification_service.cancelled
        pending = notification_service.for_reminder("r1")
        assert [item.handle for item in pending] == [new_handle]
        assert pending[0].fire_at == edited.due_date
        assert pending[0].content.payload.generation == 1

    async def test_old_payload_becomes_stale(self, scheduler, notification_service):
        old_handle = await scheduler.schedule(make_reminder())
        old_payload = notification_service.scheduled[old_handle].content.payload

        new_handle = await scheduler.reschedule(make_reminder())

        assert scheduler.is_current(old_payload) is False
        assert scheduler.is_current(notification_service.scheduled[new_handle].content.payload) is True

    async def test_cancels_before_scheduling(self, scheduler, notification_service):
        await scheduler.schedule(make_reminder())
        calls = []
        original_cancel = notification_service.cancel
        original_schedule = notification_service.schedule_at

        async def cancel(handle):
            calls.append("cancel")
            await original_cancel(handle)

        async def schedule_at(**kwargs):
            calls.append("schedule")
            return await original_schedule(**kwargs)

        notification_service.cancel = cancel
        notification_service.schedule_at = schedule_at

        await scheduler.reschedule(make_reminder())

        assert calls == ["cancel", "schedule"]

    async def test_cancel_failure_arms_nothing(self, scheduler, notification_service):
        await scheduler.schedule(make_reminder())
        notification_service.cancel = AsyncMock(side_effect=ConnectionError("down"))
        calls_before = len(notification_service.schedule_calls)

        assert await scheduler.reschedule(make_reminder()) is None
        assert len(notification_service.schedule_calls) == calls_before

    async def test_reschedule_to_past_only_cancels(self, scheduler, notification_service):
        await scheduler.schedule(make_reminder())

        result = await scheduler.reschedule(make_reminder(due_date=(FIXED_NOW - timedelta(hours=1)).isoformat()))

        assert result is None
        assert notification_service.for_reminder("r1") == []

    async def test_losing_reschedule_backs_off(self, clock):
        """A reschedule overtaken by a newer one while awaiting permission arms nothing."""

        class GatedService(FakeNotificationService):
            def __init__(self):
                super().__init__()
                self.gate = asyncio.Event()
                self.block_next = True

            async def has_permission(self):
                if self.block_next:
                    self.block_next = False
                    await self.gate.wait()
                return await super().has_permission()

        service = GatedService()
        scheduler = ReminderNotificationScheduler(service, clock=clock)

        first = asyncio.create_task(scheduler.reschedule(make_reminder(title="Old title")))
        await asyncio.sleep(0)
        second_handle = await scheduler.reschedule(make_reminder(title="New title"))
        service.gate.set()
        first_handle = await first

        assert first_handle is None
        pending = service.for_reminder("r1")
        assert [item.handle for item in pending] == [second_handle]
        assert "New title" in pending[0].content.title


@pytest.mark.unit
class TestSnoozeAndCurrency:
    """Tests for schedule_snooze() and is_current()."""

    async def test_snooze_fires_after_delay(self, scheduler, notification_service):
        handle = await scheduler.schedule_snooze(make_reminder(), delay=timedelta(minutes=10))

        item = notification_service.scheduled[handle]
        assert item.fire_at == FIXED_NOW + timedelta(minutes=10)
        assert item.content.payload.is_snooze is True

    async def test_snooze_failure_returns_none(self, scheduler, notification_service):
        notification_service.fail_all = True

        assert await scheduler.schedule_snooze(make_reminder(), delay=timedelta(minutes=10)) is None

    def test_payload_without_generation_is_current(self, scheduler):
        content = build_due_content(make_reminder(), generation=0)
        payload = content.payload.model_copy(update={"generation": None})

        assert scheduler.is_current(payload) is True

    async def test_pending_for_filters_by_reminder(self, scheduler):
        await scheduler.schedule(make_reminder())

        assert len(await scheduler.pending_for("r1")) == 1
        assert await scheduler.pending_for("r2") == []

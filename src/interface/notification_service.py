"""Notification service adapter backed by APScheduler.

Each scheduled notification is one ``DateTrigger`` job whose id is the
notification handle. When a job fires, registered received-listeners are
invoked with the handle and content, mirroring a platform's
"notification received" callback.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Protocol

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from src.core.errors import NotificationServiceError
from src.domain.notification import NotificationContent, ScheduledNotification


logger = logging.getLogger(__name__)

ReceivedListener = Callable[[str, NotificationContent], Awaitable[object]]


class NotificationService(Protocol):
    """External notification service consumed by the scheduling core."""

    async def has_permission(self) -> bool: ...

    async def schedule_at(self, *, fire_at: datetime | None, content: NotificationContent) -> str: ...

    async def cancel(self, handle: str) -> None: ...

    async def list_scheduled(self) -> list[ScheduledNotification]: ...

    def add_received_listener(self, listener: ReceivedListener) -> None: ...


class SchedulerNotificationService:
    """In-process notification service running on an AsyncIOScheduler."""

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone=UTC)
        self._listeners: list[ReceivedListener] = []

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    def start(self) -> None:
        """Start the underlying scheduler (requires a running event loop)."""
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("Notification scheduler started")

    def shutdown(self) -> None:
        """Stop the scheduler, dropping pending in-memory jobs."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Notification scheduler stopped")

    async def has_permission(self) -> bool:
        # Delivery to devices is decided per recipient; the local scheduler itself never refuses.
        return True

    def add_received_listener(self, listener: ReceivedListener) -> None:
        self._listeners.append(listener)

    async def schedule_at(self, *, fire_at: datetime | None, content: NotificationContent) -> str:
        """Schedule ``content`` to fire at ``fire_at`` (None fires immediately).

        Raises:
            NotificationServiceError: If the scheduler rejects the job
        """
        handle = uuid.uuid4().hex
        run_date = fire_at or datetime.now(UTC)
        try:
            self._scheduler.add_job(
                self._fire,
                trigger=DateTrigger(run_date=run_date),
                id=handle,
                kwargs={"handle": handle, "content": content},
                misfire_grace_time=None,
                replace_existing=False,
            )
        except Exception as e:
            msg = f"Failed to schedule notification for reminder {content.payload.reminder_id}: {e}"
            raise NotificationServiceError(msg) from e

        logger.info(
            "Scheduled notification",
            extra={
                "handle": handle,
                "reminder_id": content.payload.reminder_id,
                "category": content.payload.category,
                "fire_at": run_date.isoformat(),
            },
        )
        return handle

    async def cancel(self, handle: str) -> None:
        """Cancel a pending notification. Unknown or already-fired handles are ignored."""
        try:
            self._scheduler.remove_job(handle)
            logger.info("Cancelled notification", extra={"handle": handle})
        except JobLookupError:
            logger.debug("Notification already fired or unknown", extra={"handle": handle})

    async def list_scheduled(self) -> list[ScheduledNotification]:
        return [
            ScheduledNotification(
                handle=job.id,
                content=job.kwargs["content"],
                fire_at=getattr(job, "next_run_time", None),
            )
            for job in self._scheduler.get_jobs()
            if "content" in job.kwargs
        ]

    async def _fire(self, *, handle: str, content: NotificationContent) -> None:
        """Job entry point: hand the delivery to every received-listener."""
        logger.info(
            "Notification fired",
            extra={"handle": handle, "reminder_id": content.payload.reminder_id, "category": content.payload.category},
        )
        for listener in self._listeners:
            try:
                await listener(handle, content)
            except Exception:
                logger.exception("Received-listener failed", extra={"handle": handle})

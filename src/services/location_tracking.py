"""Movement detection for location-enabled reminders.

A tracking session starts once a reminder's due-notification has been
delivered. Position samples from the assignee's device are compared with
the reminder's anchor; the first sample further than the movement threshold
raises one movement alert and ends the session.
"""

import logging
from functools import partial

from src.core.clock import Clock, utc_now
from src.core.config import Constants
from src.core.errors import classify_notification_error
from src.core.geo import haversine_distance_meters
from src.core.logging import span
from src.domain.location import Position, TrackingSession
from src.domain.notification import NotificationCategory, NotificationContent, NotificationPayload
from src.domain.reminder import AnchorLocation
from src.interface.location_feed import LocationProvider
from src.interface.notification_service import NotificationService


logger = logging.getLogger(__name__)


class LocationTrackingCoordinator:
    """Owns the active tracking sessions, keyed by reminder ID."""

    def __init__(
        self,
        location_provider: LocationProvider,
        notification_service: NotificationService,
        *,
        clock: Clock = utc_now,
        movement_threshold_m: float = Constants.MOVEMENT_THRESHOLD_METERS,
    ) -> None:
        self._provider = location_provider
        self._service = notification_service
        self._clock = clock
        self._threshold = movement_threshold_m
        self._sessions: dict[str, TrackingSession] = {}
        self._titles: dict[str, str] = {}
        self._starting: set[str] = set()

    def is_tracking(self, reminder_id: str) -> bool:
        return reminder_id in self._sessions

    @property
    def active_sessions(self) -> list[TrackingSession]:
        return list(self._sessions.values())

    async def start_tracking(
        self,
        reminder_id: str,
        anchor: AnchorLocation,
        *,
        member_id: str,
        title: str | None = None,
    ) -> bool:
        """Begin watching the member's position against the anchor.

        Missing location permission makes this a logged no-op. Starting a
        reminder that is already tracked (or still starting) does nothing.

        Returns:
            True if a new session was started
        """
        with span("location_tracking.start_tracking"):
            if reminder_id in self._sessions or reminder_id in self._starting:
                logger.debug("Tracking already active", extra={"reminder_id": reminder_id})
                return False

            self._starting.add(reminder_id)
            try:
                return await self._start(reminder_id, anchor, member_id=member_id, title=title)
            finally:
                self._starting.discard(reminder_id)

    async def _start(self, reminder_id: str, anchor: AnchorLocation, *, member_id: str, title: str | None) -> bool:
        try:
            granted = await self._provider.request_permission(member_id)
        except Exception:
            logger.exception("Location permission request failed", extra={"reminder_id": reminder_id})
            return False
        if not granted:
            logger.info(
                "Location permission unavailable, not tracking",
                extra={"reminder_id": reminder_id, "member_id": member_id},
            )
            return False

        session = TrackingSession(
            reminder_id=reminder_id,
            member_id=member_id,
            anchor=anchor,
            started_at=self._clock(),
        )
        self._sessions[reminder_id] = session
        self._titles[reminder_id] = title or ""

        try:
            subscription = await self._provider.watch_position(
                member_id=member_id,
                interval_ms=Constants.LOCATION_POLL_INTERVAL_MS,
                min_distance_m=Constants.LOCATION_MIN_DISTANCE_METERS,
                callback=partial(self.on_position_update, reminder_id),
            )
        except Exception:
            logger.exception("Failed to watch position", extra={"reminder_id": reminder_id})
            self._discard(reminder_id, session)
            return False

        if self._sessions.get(reminder_id) is not session:
            # Stopped while the subscription was being set up
            await self._unwatch(subscription, reminder_id=reminder_id)
            return False

        session.subscription = subscription
        logger.info(
            "Started location tracking",
            extra={"reminder_id": reminder_id, "member_id": member_id, "subscription": subscription},
        )
        return True

    async def on_position_update(self, reminder_id: str, position: Position) -> bool:
        """Compare a position sample with the session's anchor.

        Returns:
            True if this sample raised the movement alert
        """
        session = self._sessions.get(reminder_id)
        if session is None:
            return False

        distance = haversine_distance_meters(
            session.anchor.latitude,
            session.anchor.longitude,
            position.latitude,
            position.longitude,
        )
        if distance <= self._threshold:
            logger.debug("Within threshold", extra={"reminder_id": reminder_id, "distance_m": round(distance, 1)})
            return False

        with span("location_tracking.movement_detected"):
            title = self._titles.get(reminder_id, "")
            # Discard first so samples arriving while we await cannot alert twice
            self._discard(reminder_id, session)
            logger.info(
                "Movement detected, raising alert",
                extra={"reminder_id": reminder_id, "member_id": session.member_id, "distance_m": round(distance, 1)},
            )

            content = NotificationContent(
                title="You moved away",
                body=f"Did you forget to {title.lower()}?" if title else "Did you forget something?",
                payload=NotificationPayload(
                    reminder_id=reminder_id,
                    category=NotificationCategory.MOVEMENT_ALERT,
                    recipient_id=session.member_id,
                ),
            )
            try:
                await self._service.schedule_at(fire_at=None, content=content)
            except Exception as e:
                logger.error(
                    "Failed to raise movement alert",
                    extra={
                        "reminder_id": reminder_id,
                        "error": str(e),
                        "error_category": classify_notification_error(e).value,
                    },
                )

            if session.subscription is not None:
                await self._unwatch(session.subscription, reminder_id=reminder_id)
            return True

    async def stop_tracking(self, reminder_id: str) -> None:
        """End the reminder's session, if any. Safe to call repeatedly."""
        session = self._sessions.pop(reminder_id, None)
        self._titles.pop(reminder_id, None)
        if session is None:
            return
        if session.subscription is not None:
            await self._unwatch(session.subscription, reminder_id=reminder_id)
        logger.info("Stopped location tracking", extra={"reminder_id": reminder_id})

    async def stop_all(self) -> None:
        """End every session (engine teardown)."""
        for reminder_id in list(self._sessions):
            await self.stop_tracking(reminder_id)

    def _discard(self, reminder_id: str, session: TrackingSession) -> None:
        if self._sessions.get(reminder_id) is session:
            del self._sessions[reminder_id]
            self._titles.pop(reminder_id, None)

    async def _unwatch(self, subscription: str, *, reminder_id: str) -> None:
        try:
            await self._provider.unwatch(subscription)
        except Exception:
            logger.exception("Failed to remove position watch", extra={"reminder_id": reminder_id})

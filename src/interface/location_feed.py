"""Device location provider fed by member devices.

Devices report permission grants and position samples over the device
webhook; watchers registered here receive the samples that pass the
polling filters (minimum interval and minimum displacement).
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from src.core.errors import PermissionDeniedError
from src.core.geo import haversine_distance_meters
from src.domain.location import Position


logger = logging.getLogger(__name__)

PositionCallback = Callable[[Position], Awaitable[None]]


class LocationProvider(Protocol):
    """Per-member device location provider."""

    async def request_permission(self, member_id: str) -> bool: ...

    async def get_current_position(self, member_id: str) -> Position: ...

    async def watch_position(
        self,
        *,
        member_id: str,
        interval_ms: int,
        min_distance_m: float,
        callback: PositionCallback,
    ) -> str: ...

    async def unwatch(self, subscription: str) -> None: ...


@dataclass
class _Watcher:
    member_id: str
    interval_ms: int
    min_distance_m: float
    callback: PositionCallback
    last_accepted: Position | None = field(default=None)

    def accepts(self, position: Position) -> bool:
        if self.last_accepted is None:
            return True
        elapsed_ms = (position.recorded_at - self.last_accepted.recorded_at).total_seconds() * 1000
        if elapsed_ms < self.interval_ms:
            return False
        moved = haversine_distance_meters(
            self.last_accepted.latitude,
            self.last_accepted.longitude,
            position.latitude,
            position.longitude,
        )
        return moved >= self.min_distance_m


class DeviceLocationFeed:
    """LocationProvider whose samples are pushed in by member devices."""

    def __init__(self) -> None:
        self._permissions: dict[str, bool] = {}
        self._last_positions: dict[str, Position] = {}
        self._watchers: dict[str, _Watcher] = {}

    def set_permission(self, member_id: str, *, granted: bool) -> None:
        """Record the permission state a device reported."""
        self._permissions[member_id] = granted
        logger.info("Location permission updated", extra={"member_id": member_id, "granted": granted})

    async def request_permission(self, member_id: str) -> bool:
        return self._permissions.get(member_id, False)

    async def get_current_position(self, member_id: str) -> Position:
        """Return the latest sample reported by the member's device.

        Raises:
            PermissionDeniedError: If the member has not granted location access
            LookupError: If the device has not reported a position yet
        """
        if not self._permissions.get(member_id, False):
            msg = f"Location permission not granted for member {member_id}"
            raise PermissionDeniedError(msg)
        try:
            return self._last_positions[member_id]
        except KeyError as e:
            raise LookupError(f"No position reported yet for member {member_id}") from e

    async def watch_position(
        self,
        *,
        member_id: str,
        interval_ms: int,
        min_distance_m: float,
        callback: PositionCallback,
    ) -> str:
        subscription = uuid.uuid4().hex
        self._watchers[subscription] = _Watcher(
            member_id=member_id,
            interval_ms=interval_ms,
            min_distance_m=min_distance_m,
            callback=callback,
        )
        logger.debug("Position watch registered", extra={"member_id": member_id, "subscription": subscription})
        return subscription

    async def unwatch(self, subscription: str) -> None:
        if self._watchers.pop(subscription, None) is not None:
            logger.debug("Position watch removed", extra={"subscription": subscription})

    @property
    def active_watch_count(self) -> int:
        return len(self._watchers)

    async def publish(self, member_id: str, position: Position) -> int:
        """Feed a device sample to the member's watchers.

        Returns:
            Number of watchers the sample was delivered to
        """
        self._last_positions[member_id] = position
        delivered = 0
        # Callbacks may unwatch themselves, so iterate over a snapshot
        for subscription, watcher in list(self._watchers.items()):
            if watcher.member_id != member_id or subscription not in self._watchers:
                continue
            if not watcher.accepts(position):
                continue
            watcher.last_accepted = position
            delivered += 1
            try:
                await watcher.callback(position)
            except Exception:
                logger.exception("Position callback failed", extra={"subscription": subscription})
        return delivered


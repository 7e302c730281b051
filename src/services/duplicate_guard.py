"""Per-session suppression of repeated delivery callbacks."""

import logging


logger = logging.getLogger(__name__)


class DuplicateDeliveryGuard:
    """Remember which notification ids were already processed in this session.

    The host platform can redeliver a "received" callback for the same
    notification (e.g. on app resume). The seen-set is in-memory only and is
    cleared at session start and teardown.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def should_process(self, notification_id: str) -> bool:
        """Return True the first time an id is observed this session, False afterwards."""
        if notification_id in self._seen:
            logger.debug("Duplicate delivery suppressed", extra={"notification_id": notification_id})
            return False
        self._seen.add(notification_id)
        return True

    def reset(self) -> None:
        """Forget every seen id (session start/teardown)."""
        if self._seen:
            logger.info("Duplicate delivery guard reset", extra={"forgotten": len(self._seen)})
        self._seen.clear()

    def __len__(self) -> int:
        return len(self._seen)

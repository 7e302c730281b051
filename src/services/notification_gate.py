"""Role-based decision on whether a viewer should see a notification."""

from src.domain.family import MemberRole
from src.domain.notification import NotificationCategory, NotificationEvent


# Exhaustive: categories missing from this table are suppressed
_DELIVERY_RULES: dict[NotificationCategory, frozenset[MemberRole]] = {
    NotificationCategory.DUE: frozenset({MemberRole.CHILD}),
    NotificationCategory.MOVEMENT_ALERT: frozenset({MemberRole.CHILD}),
    NotificationCategory.COMPLETION: frozenset({MemberRole.PARENT}),
}


def should_deliver(viewer_role: MemberRole | str, category: NotificationCategory | str) -> bool:
    """Return True if a viewer with ``viewer_role`` should see a ``category`` notification.

    Due reminders and movement alerts are for minors; completion notices are
    for guardians. Unknown roles or categories fail closed.
    """
    try:
        role = MemberRole(viewer_role)
        kind = NotificationCategory(category)
    except ValueError:
        return False
    return role in _DELIVERY_RULES.get(kind, frozenset())


def should_deliver_event(event: NotificationEvent) -> bool:
    """Apply should_deliver to a delivery event."""
    return should_deliver(event.recipient_role, event.category)

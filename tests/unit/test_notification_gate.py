"""Unit tests for role-gated notification delivery."""

from datetime import UTC, datetime

import pytest

from src.domain.family import MemberRole
from src.domain.notification import NotificationCategory, NotificationEvent
from src.services.notification_gate import should_deliver, should_deliver_event


@pytest.mark.unit
class TestShouldDeliver:
    """Tests for the delivery rule table."""

    @pytest.mark.parametrize(
        ("role", "category", "expected"),
        [
            ("parent", "due", False),
            ("child", "due", True),
            ("parent", "completion", True),
            ("child", "completion", False),
            ("parent", "movement_alert", False),
            ("child", "movement_alert", True),
        ],
    )
    def test_rule_table(self, role, category, expected):
        assert should_deliver(role, category) is expected

    def test_accepts_enums(self):
        assert should_deliver(MemberRole.CHILD, NotificationCategory.DUE) is True
        assert should_deliver(MemberRole.PARENT, NotificationCategory.DUE) is False

    @pytest.mark.parametrize("category", ["analytics", "", "DUE", "movement-alert"])
    def test_unknown_category_fails_closed(self, category):
        assert should_deliver("child", category) is False
        assert should_deliver("parent", category) is False

    def test_unknown_role_fails_closed(self):
        assert should_deliver("grandparent", "due") is False

    def test_event_variant(self):
        event = NotificationEvent(
            reminder_id="r1",
            category="completion",
            recipient_role=MemberRole.PARENT,
            delivered_at=datetime(2026, 10, 13, tzinfo=UTC),
        )
        assert should_deliver_event(event) is True
        assert should_deliver_event(event.model_copy(update={"recipient_role": MemberRole.CHILD})) is False

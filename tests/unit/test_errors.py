"""Unit tests for error classification utilities."""

import httpx
import pytest

from src.core.db_client import RecordNotFoundError
from src.core.errors import (
    ErrorCategory,
    InvalidRecurrenceError,
    NotificationServiceError,
    PermissionDeniedError,
    classify_notification_error,
)


@pytest.mark.unit
class TestClassifyNotificationError:
    """Tests for classify_notification_error function."""

    def test_permission_denied_type(self):
        assert classify_notification_error(PermissionDeniedError("nope")) == ErrorCategory.PERMISSION_DENIED

    def test_builtin_permission_error(self):
        assert classify_notification_error(PermissionError("read-only")) == ErrorCategory.PERMISSION_DENIED

    @pytest.mark.parametrize("message", ["Notifications not granted", "HTTP 403 Forbidden", "Unauthorized"])
    def test_permission_phrases(self, message):
        assert classify_notification_error(Exception(message)) == ErrorCategory.PERMISSION_DENIED

    def test_service_error_type(self):
        assert classify_notification_error(NotificationServiceError("rejected")) == ErrorCategory.SERVICE_UNAVAILABLE

    def test_connection_error(self):
        assert classify_notification_error(ConnectionError("reset")) == ErrorCategory.SERVICE_UNAVAILABLE

    def test_httpx_connect_error(self):
        assert classify_notification_error(httpx.ConnectError("refused")) == ErrorCategory.SERVICE_UNAVAILABLE

    @pytest.mark.parametrize("message", ["Request timeout", "503 Service Unavailable", "host unreachable"])
    def test_network_phrases(self, message):
        assert classify_notification_error(Exception(message)) == ErrorCategory.SERVICE_UNAVAILABLE

    def test_record_not_found(self):
        assert classify_notification_error(RecordNotFoundError("gone")) == ErrorCategory.STALE_REFERENCE

    def test_type_wins_over_message(self):
        """A missing record whose message mentions a connection is still stale."""
        error = RecordNotFoundError("connection to reminder lost")
        assert classify_notification_error(error) == ErrorCategory.STALE_REFERENCE

    def test_stale_phrase(self):
        assert classify_notification_error(Exception("Member no longer exists")) == ErrorCategory.STALE_REFERENCE

    def test_invalid_recurrence(self):
        error = InvalidRecurrenceError("Recurrence requires at least one selected weekday")
        assert classify_notification_error(error) == ErrorCategory.INVALID_RECURRENCE

    def test_unknown(self):
        assert classify_notification_error(ValueError("something odd")) == ErrorCategory.UNKNOWN

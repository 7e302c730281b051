"""Error types and classification for the notification and location subsystems."""

from enum import Enum
from typing import Literal


class NotificationServiceError(Exception):
    """The notification service was unreachable or rejected a call."""


class PermissionDeniedError(Exception):
    """Notification or location access was refused."""


class InvalidRecurrenceError(ValueError):
    """A recurrence configuration violates the weekday/frequency rules."""


class ErrorCategory(Enum):
    """Categories of failures that degrade notification delivery."""

    PERMISSION_DENIED = "permission_denied"
    SERVICE_UNAVAILABLE = "service_unavailable"
    STALE_REFERENCE = "stale_reference"
    INVALID_RECURRENCE = "invalid_recurrence"
    UNKNOWN = "unknown"


_ERROR_PATTERNS: dict[
    Literal["permission", "network", "stale"],
    dict[str, list[str] | set[str]],
] = {
    "permission": {
        "phrases": [
            "permission denied",
            "not granted",
            "unauthorized",
            "forbidden",
            "401",
            "403",
        ],
        "exception_types": {"PermissionDeniedError", "PermissionError"},
    },
    "network": {
        "phrases": [
            "connection",
            "timeout",
            "network",
            "unavailable",
            "unreachable",
            "502",
            "503",
            "504",
        ],
        "exception_types": {
            "NotificationServiceError",
            "ConnectionError",
            "TimeoutError",
            "ConnectError",
            "ReadTimeout",
        },
    },
    "stale": {
        "phrases": ["not found", "no longer"],
        "exception_types": {"RecordNotFoundError", "KeyError"},
    },
}


def _match_error_pattern(
    *,
    error_str: str,
    exception_type: str,
    pattern_type: Literal["permission", "network", "stale"],
) -> bool:
    """Return True if the error matches the configured pattern type."""
    patterns = _ERROR_PATTERNS[pattern_type]
    return any(phrase in error_str for phrase in patterns["phrases"]) or exception_type in patterns["exception_types"]


def classify_notification_error(exception: Exception) -> ErrorCategory:
    """Classify a failure raised while scheduling, dispatching or tracking.

    Exception type wins over message text so that, for example, a
    RecordNotFoundError mentioning a connection is still a stale reference.

    Args:
        exception: The exception raised by a collaborator

    Returns:
        The ErrorCategory used to tag degradation logs
    """
    error_str = str(exception).lower()
    exception_type = type(exception).__name__

    if isinstance(exception, InvalidRecurrenceError):
        return ErrorCategory.INVALID_RECURRENCE

    if exception_type in _ERROR_PATTERNS["stale"]["exception_types"]:
        return ErrorCategory.STALE_REFERENCE

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="permission"):
        return ErrorCategory.PERMISSION_DENIED

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="network"):
        return ErrorCategory.SERVICE_UNAVAILABLE

    if _match_error_pattern(error_str=error_str, exception_type=exception_type, pattern_type="stale"):
        return ErrorCategory.STALE_REFERENCE

    return ErrorCategory.UNKNOWN

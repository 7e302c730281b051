"""Recurrence policy for weekly reminder schedules.

A schedule is a set of weekdays plus a cadence in weeks: ``{Mon, Wed}``
every 2 weeks fires on Mondays and Wednesdays of every other week,
counting whole weeks from the start date.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from enum import IntEnum

from src.core.config import Constants
from src.core.errors import InvalidRecurrenceError


logger = logging.getLogger(__name__)


class Weekday(IntEnum):
    """Day of week, Sunday first (0=Sunday .. 6=Saturday)."""

    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


_WEEKDAY_NAMES = {day.name.lower(): day for day in Weekday}
_WEEKDAY_NAMES.update({day.name.lower()[:3]: day for day in Weekday})


def weekday_of(value: date) -> Weekday:
    """Return the Sunday-first weekday of a date or datetime."""
    # date.weekday() is Monday-first
    return Weekday((value.weekday() + 1) % 7)


def parse_weekday(value: int | str) -> Weekday:
    """Parse a weekday from an index ("0".."6", 0..6) or an English name.

    Raises:
        InvalidRecurrenceError: If the value is not a recognisable weekday
    """
    if isinstance(value, Weekday):
        return value
    if isinstance(value, int):
        try:
            return Weekday(value)
        except ValueError as e:
            raise InvalidRecurrenceError(f"Invalid weekday index: {value}") from e

    text = value.strip().lower()
    if text.isdigit():
        return parse_weekday(int(text))
    if text in _WEEKDAY_NAMES:
        return _WEEKDAY_NAMES[text]
    raise InvalidRecurrenceError(f"Invalid weekday: {value}")


def validate_recurrence(selected_weekdays: Iterable[int], week_frequency: int) -> None:
    """Reject recurrence parameters the policy cannot honour.

    Raises:
        InvalidRecurrenceError: If no weekday is selected or the frequency is outside [1, 52]
    """
    if not set(selected_weekdays):
        raise InvalidRecurrenceError("Recurrence requires at least one selected weekday")
    if not Constants.MIN_WEEK_FREQUENCY <= week_frequency <= Constants.MAX_WEEK_FREQUENCY:
        raise InvalidRecurrenceError(
            f"Invalid recurrence week frequency {week_frequency}: must be between "
            f"{Constants.MIN_WEEK_FREQUENCY} and {Constants.MAX_WEEK_FREQUENCY}"
        )


def _is_aligned(candidate: date, start: date, week_frequency: int) -> bool:
    weeks_since_start = (candidate - start).days // 7
    return weeks_since_start % max(week_frequency, 1) == 0


def next_occurrence(
    start_date: datetime,
    selected_weekdays: Iterable[int],
    week_frequency: int,
    *,
    now: datetime | None = None,
) -> datetime:
    """Compute the next fire instant of a weekly recurrence.

    Returns ``start_date`` itself when it is still ahead and falls on a
    selected weekday. Otherwise scans forward one day at a time, for at most
    two full cycles, and returns the first day that is on a selected weekday
    and sits in a week aligned with the cadence (whole weeks since
    ``start_date`` divisible by ``week_frequency``). Days before
    ``start_date`` never qualify. The result carries ``start_date``'s hour
    and minute.

    If nothing qualifies within the bound, the last scanned day is returned
    and a warning is logged. Only unvalidated configurations can get there.

    Args:
        start_date: First instant of the schedule; also supplies the time of day
        selected_weekdays: Sunday-first weekday indexes (0..6)
        week_frequency: Cadence in weeks (1 = every week)
        now: Reference instant, defaults to the current time in start_date's zone

    Returns:
        The next occurrence
    """
    weekdays = {int(day) for day in selected_weekdays}
    reference = now or datetime.now(start_date.tzinfo)
    if start_date.tzinfo is not None and reference.tzinfo is not None:
        # Day boundaries are taken in the schedule's own zone
        reference = reference.astimezone(start_date.tzinfo)
    time_of_day = {"hour": start_date.hour, "minute": start_date.minute, "second": 0, "microsecond": 0}
    today = reference.replace(**time_of_day)

    if start_date > reference and weekday_of(start_date) in weekdays:
        return start_date

    # Scan from today, or from the start day when the schedule has not begun
    cursor = max(today, start_date.replace(**time_of_day)) - timedelta(days=1)
    max_days = 7 * max(week_frequency, 1) * Constants.RECURRENCE_SCAN_CYCLES
    start_day = start_date.date()

    for _ in range(max_days):
        cursor += timedelta(days=1)
        if cursor <= reference or cursor.date() < start_day:
            continue
        if weekday_of(cursor) in weekdays and _is_aligned(cursor.date(), start_day, week_frequency):
            return cursor

    logger.warning(
        "Recurrence scan exhausted, returning degraded fallback",
        extra={
            "start_date": start_date.isoformat(),
            "selected_weekdays": sorted(weekdays),
            "week_frequency": week_frequency,
            "fallback": cursor.isoformat(),
        },
    )
    return cursor


def describe_recurrence(selected_weekdays: Iterable[int], week_frequency: int, start_date: datetime) -> str:
    """Render a recurrence as human-readable text.

    Example: "every 2 weeks on Monday, Wednesday at 9:00 AM"
    """
    weekdays = sorted({int(d) for d in selected_weekdays})
    days = ", ".join(Weekday(day).name.capitalize() for day in weekdays)

    h, m = start_date.hour, start_date.minute
    if h == 0 and m == 0:
        time_str = "at midnight"
    elif h == 12 and m == 0:
        time_str = "at noon"
    else:
        period = "AM" if h < 12 else "PM"
        display_hour = h % 12 or 12
        time_str = f"at {display_hour}:{m:02d} {period}"

    if len(weekdays) == len(Weekday) and week_frequency == 1:
        return f"daily {time_str}"

    cadence = "every week" if week_frequency == 1 else f"every {week_frequency} weeks"
    return f"{cadence} on {days} {time_str}"

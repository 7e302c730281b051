"""Reminder domain models and enums."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

from src.core.clock import ensure_utc
from src.core.recurrence import Weekday, parse_weekday, validate_recurrence


class ReminderStatus(StrEnum):
    """Reminder completion state. pending -> completed is one-way per occurrence."""

    PENDING = "pending"
    COMPLETED = "completed"


class AnchorLocation(BaseModel):
    """Reference point captured for movement detection."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    captured_at: datetime = Field(..., description="When the position was captured")

    @field_validator("captured_at")
    @classmethod
    def normalize_captured_at(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class RecurrenceConfig(BaseModel):
    """Weekday set + cadence + start date defining a repeating schedule."""

    selected_weekdays: set[Weekday] = Field(..., description="Sunday-first weekdays the reminder fires on")
    week_frequency: int = Field(default=1, description="Repeat every N weeks")
    start_date: datetime = Field(..., description="First instant of the schedule; supplies the time of day")
    last_generated_at: datetime | None = Field(default=None, description="When the last occurrence was armed")

    @field_validator("selected_weekdays", mode="before")
    @classmethod
    def parse_weekdays(cls, v: object) -> object:
        """Accept weekday indexes, digit strings ("0".."6") or English names."""
        if isinstance(v, list | tuple | set | frozenset):
            return {parse_weekday(day) for day in v}
        return v

    @field_validator("start_date", "last_generated_at")
    @classmethod
    def normalize_instants(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_schedule(self) -> "RecurrenceConfig":
        """Reject empty weekday sets and frequencies outside [1, 52]."""
        validate_recurrence(self.selected_weekdays, self.week_frequency)
        return self

    @field_serializer("selected_weekdays")
    def serialize_weekdays(self, weekdays: set[Weekday]) -> list[int]:
        return sorted(int(day) for day in weekdays)


class Reminder(BaseModel):
    """Reminder (task) data transfer object."""

    id: str = Field(..., description="Unique reminder ID from the document store")
    title: str = Field(..., description="Reminder title (e.g., 'Feed the cat')")
    family_id: str = Field(..., description="Family the reminder belongs to")
    assigned_to: str = Field(..., description="Member ID of the assignee")
    created_by: str = Field(..., description="Member ID of the creator")
    due_date: datetime = Field(..., description="Single fire time for non-recurring reminders")
    status: ReminderStatus = Field(default=ReminderStatus.PENDING, description="Completion state")
    is_recurring: bool = Field(default=False, description="Whether the reminder repeats")
    recurrence_config: RecurrenceConfig | None = Field(default=None, description="Present iff is_recurring")
    snooze_count: int = Field(default=0, ge=0, description="Times a due-notification was snoozed")
    last_snoozed_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    reminder_location: AnchorLocation | None = Field(
        default=None, description="Anchor for movement detection, set when location capture is enabled"
    )

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Title must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v

    @field_validator("due_date", "last_snoozed_at", "completed_at")
    @classmethod
    def normalize_instants(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    @model_validator(mode="after")
    def validate_recurrence_presence(self) -> "Reminder":
        """recurrence_config must be present exactly when is_recurring is set."""
        if self.is_recurring and self.recurrence_config is None:
            raise ValueError("Recurring reminders require a recurrence_config")
        if not self.is_recurring and self.recurrence_config is not None:
            raise ValueError("recurrence_config is only allowed on recurring reminders")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == ReminderStatus.COMPLETED

    @property
    def tracks_location(self) -> bool:
        return self.reminder_location is not None

    def to_record(self) -> dict[str, object]:
        """Document body as persisted (JSON-compatible, without the id)."""
        return self.model_dump(mode="json", exclude={"id"})

"""Pydantic models for creating records in the database."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.clock import ensure_utc
from src.domain.reminder import RecurrenceConfig


class ReminderCreate(BaseModel):
    """Pydantic model for creating a reminder record."""

    title: str = Field(..., description="Reminder title")
    family_id: str = Field(..., description="Family the reminder belongs to")
    assigned_to: str = Field(..., description="Member ID of the assignee")
    created_by: str = Field(..., description="Member ID of the creator")
    due_date: datetime = Field(..., description="Fire time for one-shot reminders")
    is_recurring: bool = Field(default=False, description="Whether the reminder repeats")
    recurrence_config: RecurrenceConfig | None = Field(None, description="Weekly schedule, required when recurring")
    capture_location: bool = Field(default=False, description="Capture the assignee's position as anchor")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate title is not blank."""
        v = v.strip()
        if not v:
            msg = "Title cannot be empty"
            raise ValueError(msg)
        return v

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def validate_recurrence(self) -> "ReminderCreate":
        """Recurring reminders need a schedule; one-shot reminders must not carry one."""
        if self.is_recurring and self.recurrence_config is None:
            msg = "Recurring reminders require a recurrence_config"
            raise ValueError(msg)
        if not self.is_recurring and self.recurrence_config is not None:
            msg = "recurrence_config is only allowed on recurring reminders"
            raise ValueError(msg)
        return self

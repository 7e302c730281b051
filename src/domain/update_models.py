"""Update models for database operations."""

from datetime import datetime

from pydantic import BaseModel

from src.domain.reminder import RecurrenceConfig


class ReminderUpdate(BaseModel):
    """Partial update of an editable reminder.

    Only fields explicitly set are applied, so ``recurrence_config=None``
    together with ``is_recurring=False`` turns a recurring reminder into a
    one-shot one.
    """

    title: str | None = None
    due_date: datetime | None = None
    is_recurring: bool | None = None
    recurrence_config: RecurrenceConfig | None = None
    assigned_to: str | None = None

    def changes(self) -> dict[str, object]:
        """Fields the caller set, ready to merge into a reminder dump."""
        return self.model_dump(include=self.model_fields_set)

from src.services import (
    family_service,
    reminder_service,
)


__all__ = [
    "family_service",
    "reminder_service",
]

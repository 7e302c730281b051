"""Location domain models."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from src.domain.reminder import AnchorLocation


class Position(BaseModel):
    """A device position sample."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float | None = Field(default=None, ge=0, description="Horizontal accuracy in meters")
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def to_anchor(self) -> AnchorLocation:
        return AnchorLocation(latitude=self.latitude, longitude=self.longitude, captured_at=self.recorded_at)


class TrackingSession(BaseModel):
    """In-memory state held while a reminder's movement is being watched."""

    reminder_id: str
    member_id: str
    anchor: AnchorLocation
    started_at: datetime
    subscription: str | None = None

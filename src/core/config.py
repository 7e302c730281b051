"""Configuration management for dontforget."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Document store
    sqlite_db_path: str = Field(default="data/dontforget.db", description="SQLite file backing the document store")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment reported to Logfire")

    # Expo push delivery
    expo_push_url: str = Field(
        default="https://exp.host/--/api/v2/push/send", description="Expo push notification endpoint"
    )
    expo_access_token: str | None = Field(default=None, description="Expo access token (optional)")
    enable_push_delivery: bool = Field(
        default=True, description="Send displayed notifications to member devices via Expo push"
    )

    # Reminder behaviour
    snooze_minutes: int = Field(default=10, ge=1, description="Minutes a snoozed due-notification is deferred")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants (fixed business rules)."""

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_BAD_REQUEST: int = 400
    HTTP_SERVER_ERROR: int = 500

    # Completion notifications fire after a settling delay to batch near-simultaneous completions
    COMPLETION_SETTLING_DELAY_SECONDS: int = 30

    # Movement detection
    MOVEMENT_THRESHOLD_METERS: float = 20.0
    LOCATION_POLL_INTERVAL_MS: int = 10_000
    LOCATION_MIN_DISTANCE_METERS: float = 5.0
    EARTH_RADIUS_METERS: float = 6_371_000.0

    # Recurrence
    MIN_WEEK_FREQUENCY: int = 1
    MAX_WEEK_FREQUENCY: int = 52
    RECURRENCE_SCAN_CYCLES: int = 2  # Look ahead at most two full cycles

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100

    # Push delivery retries
    PUSH_MAX_RETRIES: int = 3
    PUSH_RETRY_DELAY_SECONDS: float = 1.0

    # Paths
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()

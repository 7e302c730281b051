"""Tests for configuration and startup validation."""

import pytest
from pydantic import ValidationError

from src.core.config import Constants, Settings
from src.main import validate_startup_configuration


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(expo_access_token="expo-secret")

    result = settings.require_credential("expo_access_token", "Expo access token")

    assert result == "expo-secret"


def test_require_credential_with_none_raises_error() -> None:
    """Test require_credential raises ValueError when credential is None."""
    settings = Settings(expo_access_token=None)

    with pytest.raises(ValueError, match="Expo access token credential not configured"):
        settings.require_credential("expo_access_token", "Expo access token")


def test_require_credential_with_empty_string_raises_error() -> None:
    """Test require_credential raises ValueError when credential is empty."""
    settings = Settings(expo_access_token="")

    with pytest.raises(ValueError, match="EXPO_ACCESS_TOKEN"):
        settings.require_credential("expo_access_token", "Expo access token")


def test_snooze_minutes_must_be_positive() -> None:
    """Test a zero snooze delay is rejected."""
    with pytest.raises(ValidationError, match="snooze_minutes"):
        Settings(snooze_minutes=0)


def test_settings_read_environment(monkeypatch) -> None:
    """Test settings pick up environment variables case-insensitively."""
    monkeypatch.setenv("SNOOZE_MINUTES", "15")
    monkeypatch.setenv("ENVIRONMENT", "Production")

    settings = Settings()

    assert settings.snooze_minutes == 15
    assert settings.is_production is True


def test_business_constants() -> None:
    """Test the fixed timing and distance rules."""
    assert Constants.COMPLETION_SETTLING_DELAY_SECONDS == 30
    assert Constants.MOVEMENT_THRESHOLD_METERS == 20.0
    assert Constants.LOCATION_POLL_INTERVAL_MS == 10_000
    assert Constants.LOCATION_MIN_DISTANCE_METERS == 5.0
    assert (Constants.MIN_WEEK_FREQUENCY, Constants.MAX_WEEK_FREQUENCY) == (1, 52)


def test_startup_validation_passes_in_development(monkeypatch) -> None:
    """Test push delivery without an Expo token is allowed outside production."""
    monkeypatch.setattr(
        "src.main.settings", Settings(environment="development", enable_push_delivery=True, expo_access_token=None)
    )

    validate_startup_configuration()


def test_startup_validation_fails_without_token_in_production(monkeypatch) -> None:
    """Test production push delivery requires an Expo access token."""
    monkeypatch.setattr(
        "src.main.settings", Settings(environment="production", enable_push_delivery=True, expo_access_token=None)
    )

    with pytest.raises(SystemExit) as exc_info:
        validate_startup_configuration()

    assert exc_info.value.code == 1


def test_startup_validation_skips_token_when_push_disabled(monkeypatch) -> None:
    """Test the Expo token is not required when push delivery is off."""
    monkeypatch.setattr(
        "src.main.settings", Settings(environment="production", enable_push_delivery=False, expo_access_token=None)
    )

    validate_startup_configuration()

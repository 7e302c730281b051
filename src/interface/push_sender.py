"""Expo push sender with retry logic, used to display notifications on member devices."""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field

from src.core.config import constants, settings
from src.domain.notification import NotificationContent


logger = logging.getLogger(__name__)


# HTTP status code constants for error handling
HTTP_CLIENT_ERROR_START = 400
HTTP_CLIENT_ERROR_END = 500


class SendPushResult(BaseModel):
    """Result of sending a push notification."""

    success: bool = Field(..., description="Whether Expo accepted the push")
    ticket_id: str | None = Field(None, description="Expo push ticket ID if accepted")
    error: str | None = Field(None, description="Error message if failed")


def is_expo_push_token(token: str) -> bool:
    """Check that a token looks like an Expo push token."""
    return token.startswith(("ExponentPushToken[", "ExpoPushToken[")) and token.endswith("]")


def build_push_message(*, to_token: str, content: NotificationContent) -> dict[str, Any]:
    """Build the Expo push message body for a notification."""
    return {
        "to": to_token,
        "title": content.title,
        "body": content.body,
        "data": content.payload.model_dump(mode="json"),
        "sound": "default",
        "priority": "high",
    }


def _extract_ticket(data: dict[str, Any]) -> tuple[str | None, str | None]:
    """Return (ticket_id, error) from an Expo push response body.

    Expo answers ``{"data": {"status": "ok", "id": ...}}`` or
    ``{"data": {"status": "error", "message": ...}}``.
    """
    ticket = data.get("data")
    if isinstance(ticket, list):
        ticket = ticket[0] if ticket else {}
    if not isinstance(ticket, dict):
        return None, "Malformed Expo response"
    if ticket.get("status") == "ok":
        return ticket.get("id"), None
    return None, ticket.get("message") or "Push rejected"


async def send_push(
    *,
    to_token: str,
    content: NotificationContent,
    max_retries: int = constants.PUSH_MAX_RETRIES,
    retry_delay: float = constants.PUSH_RETRY_DELAY_SECONDS,
) -> SendPushResult:
    """Send a push notification via the Expo push API with retry logic.

    Client errors (4xx, invalid token) are not retried; server and network
    errors are retried with exponential backoff.
    """
    if not is_expo_push_token(to_token):
        return SendPushResult(success=False, error=f"Invalid push token: {to_token}")

    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if settings.expo_access_token:
        headers["Authorization"] = f"Bearer {settings.expo_access_token}"
    message = build_push_message(to_token=to_token, content=content)

    for attempt in range(max_retries):
        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                response = await client.post(settings.expo_push_url, json=message, headers=headers)

                if response.is_success:
                    ticket_id, error = _extract_ticket(response.json())
                    if error:
                        logger.warning("Expo rejected push: %s", error, extra={"to_token": to_token})
                        return SendPushResult(success=False, error=error)
                    return SendPushResult(success=True, ticket_id=ticket_id)

                if HTTP_CLIENT_ERROR_START <= response.status_code < HTTP_CLIENT_ERROR_END:
                    return SendPushResult(success=False, error=f"Client error: {response.text}")

                raise httpx.HTTPStatusError(
                    f"Server error: {response.status_code}", request=response.request, response=response
                )
        except httpx.HTTPStatusError as e:
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                return SendPushResult(success=False, error=f"Failed after retries: {e!s}")
        except Exception as e:
            if attempt < max_retries - 1:
                await asyncio.sleep(retry_delay * (2**attempt))
            else:
                return SendPushResult(success=False, error=f"Failed after retries: {e!s}")

    return SendPushResult(success=False, error="Max retries exceeded")

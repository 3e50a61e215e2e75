"""Outbound WhatsApp messages through WAHA, with per-recipient rate limiting and retries."""

import asyncio
import logging
import time
from collections import defaultdict, deque
from typing import Any

import httpx
from pydantic import BaseModel, Field

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


RATE_LIMIT_WINDOW_SECONDS = 60.0


class SendMessageResult(BaseModel):
    """Result of sending a WhatsApp message."""

    success: bool = Field(..., description="Whether the message was sent successfully")
    message_id: str | None = Field(None, description="WhatsApp message ID if successful")
    error: str | None = Field(None, description="Error message if failed")


class Button(BaseModel):
    """Quick-reply button attached to a message."""

    id: str = Field(..., description="Payload echoed back when the button is tapped")
    text: str = Field(..., description="Button label")


class RateLimiter:
    """Sliding one-minute window of sends per recipient."""

    def __init__(self, limit: int | None = None) -> None:
        self._limit = limit or constants.MAX_REQUESTS_PER_MINUTE
        self._sent: dict[str, deque[float]] = defaultdict(deque)

    def can_send(self, phone: str) -> bool:
        window = self._sent[phone]
        cutoff = time.monotonic() - RATE_LIMIT_WINDOW_SECONDS
        while window and window[0] <= cutoff:
            window.popleft()
        return len(window) < self._limit

    def record_request(self, phone: str) -> None:
        self._sent[phone].append(time.monotonic())


rate_limiter = RateLimiter()


def format_phone_for_waha(phone: str) -> str:
    """Turn a phone number or identity into a WAHA chat id, e.g. ``1234567890@c.us``."""
    digits = phone.removeprefix("whatsapp:").replace("+", "").strip()
    return digits if digits.endswith("@c.us") else f"{digits}@c.us"


def _message_id(body: dict[str, Any]) -> str | None:
    # WAHA returns the id either as a string or as an object carrying _serialized
    raw_id = body.get("id")
    if isinstance(raw_id, dict):
        return raw_id.get("_serialized") or str(raw_id)
    return raw_id


async def _post_to_waha(
    *,
    endpoint: str,
    payload: dict[str, Any],
    max_retries: int,
    retry_delay: float,
) -> SendMessageResult:
    """POST to a WAHA endpoint.

    Client errors fail immediately. Server errors and transport failures are
    retried with exponential backoff starting at ``retry_delay`` seconds.
    """
    url = f"{settings.waha_base_url}/api/{endpoint}"
    headers = {"Content-Type": "application/json"}
    if settings.waha_api_key:
        headers["X-Api-Key"] = settings.waha_api_key

    transport_error: httpx.HTTPError | None = None
    for attempt in range(max_retries):
        if attempt:
            await asyncio.sleep(retry_delay * 2 ** (attempt - 1))

        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("WAHA %s failed on attempt %d/%d: %s", endpoint, attempt + 1, max_retries, e)
            transport_error = e
            continue

        if response.is_success:
            return SendMessageResult(success=True, message_id=_message_id(response.json()))
        if response.status_code < constants.HTTP_SERVER_ERROR:
            return SendMessageResult(success=False, error=f"Client error: {response.text}")

        logger.warning(
            "WAHA %s returned %d on attempt %d/%d", endpoint, response.status_code, attempt + 1, max_retries
        )
        transport_error = None

    if transport_error is not None:
        return SendMessageResult(success=False, error=f"Failed after retries: {transport_error!s}")
    return SendMessageResult(success=False, error="Max retries exceeded")


def _rate_limited(to_phone: str) -> SendMessageResult | None:
    if not rate_limiter.can_send(to_phone):
        logger.warning("Rate limit reached", extra={"to_phone": to_phone})
        return SendMessageResult(success=False, error="Rate limit exceeded. Please try again later.")
    rate_limiter.record_request(to_phone)
    return None


async def send_text_message(
    *,
    to_phone: str,
    text: str,
    max_retries: int = 3,
    retry_delay: float = 1.0,
) -> SendMessageResult:
    """Send a plain text message."""
    if limited := _rate_limited(to_phone):
        return limited

    payload = {"session": settings.waha_session, "chatId": format_phone_for_waha(to_phone), "text": text}
    return await _post_to_waha(endpoint="sendText", payload=payload, max_retries=max_retries, retry_delay=retry_delay)


async def send_buttons_message(
    *,
    to_phone: str,
    text: str,
    buttons: list[Button],
    max_retries: int = 3,
    retry_delay: float = 1.0,
) -> SendMessageResult:
    """Send a message with quick-reply buttons.

    Falls back to a plain text message when interactive buttons are disabled.
    """
    if not settings.enable_interactive_buttons:
        return await send_text_message(to_phone=to_phone, text=text, max_retries=max_retries, retry_delay=retry_delay)

    if limited := _rate_limited(to_phone):
        return limited

    payload = {
        "session": settings.waha_session,
        "chatId": format_phone_for_waha(to_phone),
        "body": text,
        "buttons": [{"type": "reply", "id": button.id, "text": button.text} for button in buttons],
    }
    return await _post_to_waha(
        endpoint="sendButtons", payload=payload, max_retries=max_retries, retry_delay=retry_delay
    )

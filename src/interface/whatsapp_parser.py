"""WhatsApp webhook payload parser."""

from typing import Any

from pydantic import BaseModel, Field

from src.core.identity import normalize_identity


# Chat IDs that never carry a person's phone number
_NON_PHONE_SUFFIXES = ("@lid", "@newsletter", "@broadcast")


class ParsedMessage(BaseModel):
    """Parsed WhatsApp message data."""

    message_id: str = Field(..., description="Unique message ID from WhatsApp")
    from_phone: str = Field(..., description="Sender identity, normalized to digits")
    text: str | None = Field(None, description="Text content of the message (None for media-only messages)")
    timestamp: str = Field(..., description="Message timestamp (Unix epoch as string)")
    message_type: str = Field(..., description="'button_reply' or 'text'")
    button_payload: str | None = Field(None, description="Button ID for interactive message responses")
    from_me: bool = Field(False, description="True if the bot's own account sent the message")
    is_group_message: bool = Field(False, description="True if message is from a group chat")
    group_id: str | None = Field(None, description="Group JID if this is a group message")


def _phone_from_chat_id(chat_id: str | None) -> str | None:
    """Return the digits of a personal chat ID, or None for IDs that aren't phones."""
    if not chat_id or chat_id.endswith(_NON_PHONE_SUFFIXES):
        return None
    phone = normalize_identity(chat_id)
    # E.164 numbers are 1-15 digits
    return phone if 0 < len(phone) <= 15 else None  # noqa: PLR2004


def _extract_button_payload(msg_type: str, payload: dict[str, Any]) -> str | None:
    """Extract button payload from interactive message responses.

    Args:
        msg_type: The message type from the payload
        payload: The webhook payload

    Returns:
        Button payload ID if present, None otherwise
    """
    key = {"buttons_response": "selectedButtonId", "list_response": "selectedRowId"}.get(msg_type)
    if key is None:
        return None
    return payload.get(key) or payload.get("_data", {}).get(key)


def parse_waha_webhook(data: dict[str, Any]) -> ParsedMessage | None:
    """Parse WAHA WhatsApp webhook JSON data.

    WAHA sends webhooks with structure:
    {
        "event": "message",
        "payload": {
            "id": "true_1234567890@c.us_ABC123",
            "from": "1234567890@c.us",
            "fromMe": false,
            "body": "/tasks",
            "timestamp": 1678900000,
            "type": "chat"
        }
    }

    Args:
        data: Parsed JSON webhook data

    Returns:
        ParsedMessage if valid webhook data, None otherwise
    """
    event = data.get("event")
    if event is not None and event not in ("message", "message.any"):
        return None

    payload = data.get("payload", data)

    msg_id = payload.get("id")
    from_raw = payload.get("from")
    if not msg_id or not from_raw or from_raw == "status@broadcast":
        return None

    is_group_message = from_raw.endswith("@g.us")
    sender_raw = payload.get("participant") if is_group_message else from_raw
    from_phone = _phone_from_chat_id(sender_raw)
    if from_phone is None:
        return None

    msg_type = payload.get("type", "text")
    button_payload = _extract_button_payload(msg_type, payload)

    return ParsedMessage(
        message_id=msg_id,
        from_phone=from_phone,
        text=payload.get("body"),
        timestamp=str(payload.get("timestamp", "")),
        message_type="button_reply" if button_payload else "text",
        button_payload=button_payload,
        from_me=bool(payload.get("fromMe", False)),
        is_group_message=is_group_message,
        group_id=from_raw if is_group_message else None,
    )

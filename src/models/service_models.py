"""Pydantic models for service layer return types."""

from pydantic import BaseModel


class NotificationResult(BaseModel):
    """Result of sending a notification."""

    recipient: str
    success: bool
    error: str | None = None

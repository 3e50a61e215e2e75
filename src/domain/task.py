"""Task domain model and enums."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.config import settings


class TaskStatus(StrEnum):
    """Task lifecycle state."""

    OPEN = "OPEN"
    COMPLETED = "COMPLETED"


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime, reading naive values in the configured timezone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=settings.tz)
    return value.astimezone(UTC)


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    description: str = Field(..., description="What needs to be done")
    creator: str = Field(..., description="Normalized identity of the creator")
    assignees: list[str] = Field(..., min_length=1, description="Normalized identities, in display order")
    due_date: datetime | None = Field(default=None, description="When the task is due (UTC)")
    notes: str | None = Field(default=None, description="Free-form notes")
    status: TaskStatus = Field(default=TaskStatus.OPEN, description="Current lifecycle state")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    completed_at: datetime | None = Field(default=None, description="Completion timestamp (UTC)")

    @field_validator("due_date", "created_at", "completed_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        """Store every timestamp as an aware UTC datetime."""
        return as_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_completion_consistency(self) -> "Task":
        """A task is COMPLETED exactly when it carries a completion timestamp."""
        if (self.status == TaskStatus.COMPLETED) != (self.completed_at is not None):
            msg = f"Task {self.id}: status {self.status} is inconsistent with completed_at={self.completed_at}"
            raise ValueError(msg)
        return self

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Task":
        """Build a Task from a database record."""
        return cls.model_validate(record)

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def participants(self) -> list[str]:
        """Creator followed by assignees, without duplicates."""
        return list(dict.fromkeys([self.creator, *self.assignees]))

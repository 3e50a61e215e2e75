"""Update models for database operations."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator

from src.core.identity import normalize_identities
from src.domain.task import as_utc


class TaskUpdate(BaseModel):
    """Generic edit payload for description, due date and assignees.

    Status and notes have dedicated operations, so any other field is rejected.
    """

    model_config = ConfigDict(extra="forbid")

    description: str | None = None
    due_date: datetime | None = None
    assignees: list[str] | None = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            msg = "Task description cannot be empty"
            raise ValueError(msg)
        return v

    @field_validator("assignees")
    @classmethod
    def validate_assignees(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        normalized = normalize_identities(v)
        if not normalized:
            msg = "Task must have at least one assignee"
            raise ValueError(msg)
        return normalized

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None


class NotesUpdate(BaseModel):
    """Update payload for task notes. Empty notes clear the field."""

    notes: str | None = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

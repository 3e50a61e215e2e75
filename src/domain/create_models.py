"""Pydantic models for creating records in database."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.core.identity import normalize_identities, normalize_identity
from src.domain.task import as_utc


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    description: str = Field(..., description="What needs to be done")
    creator: str = Field(..., description="Identity of the creator (any phone or chat ID form)")
    assignees: list[str] = Field(..., description="Identities of the assignees")
    due_date: datetime | None = Field(None, description="When the task is due")
    notes: str | None = Field(None, description="Optional notes")

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        """Validate description is not blank."""
        v = v.strip()
        if not v:
            msg = "Task description cannot be empty"
            raise ValueError(msg)
        return v

    @field_validator("creator")
    @classmethod
    def normalize_creator(cls, v: str) -> str:
        """Normalize the creator identity to its digits-only form."""
        normalized = normalize_identity(v)
        if not normalized:
            msg = f"Invalid creator identity: {v!r}"
            raise ValueError(msg)
        return normalized

    @field_validator("assignees")
    @classmethod
    def normalize_assignees(cls, v: list[str]) -> list[str]:
        """Normalize assignees, dropping blanks and duplicates."""
        normalized = normalize_identities(v)
        if not normalized:
            msg = "Task must have at least one assignee"
            raise ValueError(msg)
        return normalized

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

"""Domain models and DTOs."""

from src.domain.create_models import TaskCreate
from src.domain.task import Task, TaskStatus
from src.domain.update_models import NotesUpdate, TaskUpdate


__all__ = [
    "NotesUpdate",
    "Task",
    "TaskCreate",
    "TaskStatus",
    "TaskUpdate",
]

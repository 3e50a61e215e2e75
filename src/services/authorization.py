"""Ownership-based authorization for per-user task mutations."""

import logging

from src.core import db_client
from src.core.errors import ForbiddenError, TaskNotFoundError
from src.core.identity import normalize_identity
from src.core.logging import span
from src.domain.task import Task


logger = logging.getLogger(__name__)


def is_authorized(task: Task, actor: str) -> bool:
    """Check whether an actor is the task's creator or one of its assignees."""
    normalized = normalize_identity(actor)
    if not normalized:
        return False
    return normalized == task.creator or normalized in task.assignees


async def authorize(*, task_id: str, actor: str) -> Task:
    """Load a task and verify the actor may change its status or notes.

    Args:
        task_id: Task ID
        actor: Identity of the acting user, in any phone or chat ID form

    Returns:
        Current snapshot of the task

    Raises:
        TaskNotFoundError: If no task exists for task_id
        ForbiddenError: If the actor is neither creator nor assignee
    """
    with span("authorization.authorize"):
        try:
            record = await db_client.get_record(collection="tasks", record_id=task_id)
        except db_client.RecordNotFoundError as e:
            raise TaskNotFoundError(task_id) from e

        task = Task.from_record(record)
        if not is_authorized(task, actor):
            logger.warning("Authorization denied", extra={"task_id": task_id, "actor": normalize_identity(actor)})
            raise ForbiddenError(task_id, normalize_identity(actor))

        return task

"""Task service: lifecycle operations and queries.

Each mutation persists first, then adjusts the reminder through the scheduler
it is handed, then notifies. Notification failures are logged by the
notification layer and never undo the change.
"""

import logging
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from src.core import db_client
from src.core.config import Constants
from src.core.errors import TaskNotFoundError, TaskValidationError
from src.core.identity import normalize_identities, normalize_identity
from src.core.logging import span
from src.core.scheduler import ReminderScheduler
from src.domain.create_models import TaskCreate
from src.domain.task import Task, TaskStatus
from src.domain.update_models import NotesUpdate, TaskUpdate
from src.services import notification_service
from src.services.authorization import authorize


logger = logging.getLogger(__name__)

COLLECTION = "tasks"

M = TypeVar("M", bound=BaseModel)


def _validated(model: type[M], data: M | dict[str, Any]) -> M:
    """Coerce raw input into a model, raising TaskValidationError on bad shape."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg'].removeprefix('Value error, ')}"
            for err in e.errors()
        )
        raise TaskValidationError(details) from e


async def _update(task_id: str, data: dict[str, Any]) -> Task:
    try:
        record = await db_client.update_record(collection=COLLECTION, record_id=task_id, data=data)
    except db_client.RecordNotFoundError as e:
        raise TaskNotFoundError(task_id) from e
    return Task.from_record(record)


async def get_task(*, task_id: str) -> Task:
    """Get a task by ID.

    Raises:
        TaskNotFoundError: If no task exists for task_id
    """
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=task_id)
    except db_client.RecordNotFoundError as e:
        raise TaskNotFoundError(task_id) from e
    return Task.from_record(record)


async def create_task(*, data: TaskCreate | dict[str, Any], scheduler: ReminderScheduler) -> Task:
    """Create a new task, arm its reminder and notify everyone involved.

    Args:
        data: Description, creator, assignees and optional due date and notes
        scheduler: The process's reminder scheduler

    Returns:
        The persisted task

    Raises:
        TaskValidationError: If the description or assignees are empty
    """
    with span("task_service.create_task"):
        payload = _validated(TaskCreate, data)

        record = await db_client.create_record(
            collection=COLLECTION,
            data={
                "description": payload.description,
                "creator": payload.creator,
                "assignees": payload.assignees,
                "due_date": payload.due_date,
                "notes": payload.notes,
                "status": TaskStatus.OPEN.value,
                "created_at": datetime.now(UTC),
                "completed_at": None,
            },
        )
        task = Task.from_record(record)

        scheduler.schedule(task)
        await notification_service.notify_task_created(task=task)

        logger.info(
            "Created task",
            extra={"task_id": task.id, "creator": task.creator, "assignees": task.assignees},
        )
        return task


async def edit_task(*, task_id: str, patch: TaskUpdate | dict[str, Any], scheduler: ReminderScheduler) -> Task:
    """Apply a generic edit to description, due date or assignees.

    The reminder is re-armed only when the due date actually changes value.

    Args:
        task_id: Task ID
        patch: Fields to change; status and notes are rejected
        scheduler: The process's reminder scheduler

    Returns:
        The updated task

    Raises:
        TaskValidationError: If the patch has an unknown or empty field
        TaskNotFoundError: If the task doesn't exist
    """
    with span("task_service.edit_task"):
        update = _validated(TaskUpdate, patch)
        changes = {
            field: value
            for field, value in update.model_dump(exclude_unset=True).items()
            if value is not None or field == "due_date"
        }

        current = await get_task(task_id=task_id)
        if not changes:
            return current

        task = await _update(task_id, changes)

        if "due_date" in changes and task.due_date != current.due_date:
            if task.status == TaskStatus.OPEN:
                scheduler.reschedule(task)
            else:
                scheduler.cancel(task.id)

        logger.info("Edited task", extra={"task_id": task_id, "fields": sorted(changes)})
        return task


async def complete_task(*, task_id: str, actor: str, scheduler: ReminderScheduler) -> Task:
    """Mark a task as completed.

    Completing an already completed task returns it unchanged and notifies
    nobody.

    Args:
        task_id: Task ID
        actor: Identity of the user completing the task
        scheduler: The process's reminder scheduler

    Returns:
        The completed task

    Raises:
        TaskNotFoundError: If the task doesn't exist
        ForbiddenError: If the actor is neither creator nor assignee
    """
    with span("task_service.complete_task"):
        task = await authorize(task_id=task_id, actor=actor)
        if task.status == TaskStatus.COMPLETED:
            logger.info("Task already completed", extra={"task_id": task_id})
            return task

        task = await _update(
            task_id,
            {"status": TaskStatus.COMPLETED.value, "completed_at": datetime.now(UTC)},
        )
        scheduler.cancel(task.id)

        completed_by = normalize_identity(actor)
        await notification_service.notify_task_completed(task=task, completed_by=completed_by)

        logger.info("Completed task", extra={"task_id": task_id, "completed_by": completed_by})
        return task


async def reopen_task(*, task_id: str, actor: str, scheduler: ReminderScheduler) -> Task:
    """Move a completed task back to OPEN.

    Reopening an open task returns it unchanged. On a real transition the
    reminder is re-armed when the reminder time is still ahead.

    Raises:
        TaskNotFoundError: If the task doesn't exist
        ForbiddenError: If the actor is neither creator nor assignee
    """
    with span("task_service.reopen_task"):
        task = await authorize(task_id=task_id, actor=actor)
        if task.status == TaskStatus.OPEN:
            logger.info("Task already open", extra={"task_id": task_id})
            return task

        task = await _update(task_id, {"status": TaskStatus.OPEN.value, "completed_at": None})
        scheduler.schedule(task)

        reopened_by = normalize_identity(actor)
        await notification_service.notify_task_reopened(task=task, reopened_by=reopened_by)

        logger.info("Reopened task", extra={"task_id": task_id, "reopened_by": reopened_by})
        return task


async def update_notes(*, task_id: str, notes: str | NotesUpdate | None, actor: str) -> Task:
    """Replace a task's notes. Empty notes clear them.

    Raises:
        TaskNotFoundError: If the task doesn't exist
        ForbiddenError: If the actor is neither creator nor assignee
    """
    with span("task_service.update_notes"):
        payload = notes if isinstance(notes, NotesUpdate) else _validated(NotesUpdate, {"notes": notes})

        await authorize(task_id=task_id, actor=actor)
        task = await _update(task_id, {"notes": payload.notes})

        updated_by = normalize_identity(actor)
        await notification_service.notify_notes_updated(task=task, updated_by=updated_by)

        logger.info("Updated task notes", extra={"task_id": task_id, "updated_by": updated_by})
        return task


async def delete_task(*, task_id: str, scheduler: ReminderScheduler, actor: str | None = None) -> None:
    """Delete a task after retracting its reminder.

    Args:
        task_id: Task ID
        scheduler: The process's reminder scheduler
        actor: Identity of the deleter; shown as 'admin' when omitted

    Raises:
        TaskNotFoundError: If the task doesn't exist
    """
    with span("task_service.delete_task"):
        task = await get_task(task_id=task_id)

        scheduler.cancel(task_id)
        try:
            await db_client.delete_record(collection=COLLECTION, record_id=task_id)
        except db_client.RecordNotFoundError as e:
            raise TaskNotFoundError(task_id) from e

        deleted_by = normalize_identity(actor) or Constants.DELETED_BY_ADMIN
        await notification_service.notify_task_deleted(task=task, deleted_by=deleted_by)

        logger.info("Deleted task", extra={"task_id": task_id, "deleted_by": deleted_by})


async def list_active_tasks() -> list[Task]:
    """List all open tasks, newest first."""
    with span("task_service.list_active_tasks"):
        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=f'status = "{TaskStatus.OPEN}"',
            sort="-created_at",
        )
        return [Task.from_record(r) for r in records]


async def list_tasks_for_user(identity: str, *, active_only: bool = False) -> list[Task]:
    """List tasks a user created or is assigned to.

    Sorted by due date (tasks without one last), then newest first.

    Args:
        identity: User identity, in any phone or chat ID form
        active_only: Only include open tasks

    Returns:
        List of matching tasks
    """
    with span("task_service.list_tasks_for_user"):
        normalized = normalize_identity(identity)
        if not normalized:
            return []

        safe = db_client.sanitize_param(normalized)
        filter_query = f'(creator = "{safe}" || assignees ?= "{safe}")'
        if active_only:
            filter_query += f' && status = "{TaskStatus.OPEN}"'

        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=filter_query,
            sort="due_date,-created_at",
        )
        return [Task.from_record(r) for r in records]


async def list_tasks_for_assignees(identities: list[str]) -> list[Task]:
    """List open tasks assigned to any of the given users."""
    with span("task_service.list_tasks_for_assignees"):
        normalized = normalize_identities(identities)
        if not normalized:
            return []

        membership = " || ".join(f'assignees ?= "{db_client.sanitize_param(i)}"' for i in normalized)
        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=f'({membership}) && status = "{TaskStatus.OPEN}"',
            sort="due_date,-created_at",
        )
        return [Task.from_record(r) for r in records]

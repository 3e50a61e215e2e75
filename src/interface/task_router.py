"""Task REST API for the web dashboard.

Responses use a ``{"success": bool, "data" | "error": ...}`` envelope.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse

from src.core.config import Constants
from src.core.errors import ForbiddenError, TaskError, TaskNotFoundError, TaskValidationError
from src.core.scheduler import ReminderScheduler
from src.domain.task import Task
from src.interface.dependencies import get_reminder_scheduler
from src.services import task_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

_STATUS_BY_ERROR: list[tuple[type[TaskError], int]] = [
    (TaskValidationError, Constants.HTTP_BAD_REQUEST),
    (TaskNotFoundError, Constants.HTTP_NOT_FOUND),
    (ForbiddenError, Constants.HTTP_FORBIDDEN),
]


async def task_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate task errors into enveloped JSON responses."""
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR if isinstance(exc, error_type)),
        Constants.HTTP_SERVER_ERROR,
    )
    logger.info(
        "Task request rejected",
        extra={"path": request.url.path, "status_code": status_code, "error": str(exc)},
    )
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})


def _ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def _dump(task: Task) -> dict[str, Any]:
    return task.model_dump(mode="json")


def _require_phone(phone: str | None) -> str:
    if not phone:
        msg = "Phone number is required"
        raise TaskValidationError(msg)
    return phone


@router.get("/user/{phone}")
async def get_tasks_by_phone(phone: str) -> dict[str, Any]:
    """List every task the user created or is assigned to."""
    tasks = await task_service.list_tasks_for_user(phone)
    logger.info("Fetched tasks for user", extra={"count": len(tasks)})
    return _ok([_dump(task) for task in tasks])


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    body: dict[str, Any] = Body(...),  # noqa: B008
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),  # noqa: B008
) -> dict[str, Any]:
    """Generic edit of description, due date and assignees."""
    if "status" in body or "notes" in body:
        msg = "Please use specific endpoints for status (/complete, /reopen) or notes (/notes) updates."
        raise TaskValidationError(msg)

    task = await task_service.edit_task(task_id=task_id, patch=body, scheduler=scheduler)
    return _ok(_dump(task))


@router.patch("/{task_id}/complete")
async def complete_task(
    task_id: str,
    phone: str | None = None,
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),  # noqa: B008
) -> dict[str, Any]:
    task = await task_service.complete_task(task_id=task_id, actor=_require_phone(phone), scheduler=scheduler)
    return _ok(_dump(task))


@router.patch("/{task_id}/reopen")
async def reopen_task(
    task_id: str,
    phone: str | None = None,
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),  # noqa: B008
) -> dict[str, Any]:
    task = await task_service.reopen_task(task_id=task_id, actor=_require_phone(phone), scheduler=scheduler)
    return _ok(_dump(task))


@router.patch("/{task_id}/notes")
async def update_task_notes(
    task_id: str,
    phone: str | None = None,
    body: dict[str, Any] = Body(...),  # noqa: B008
) -> dict[str, Any]:
    """Replace a task's notes; an empty string or null clears them."""
    actor = _require_phone(phone)
    if "notes" not in body:
        msg = "Notes field is required"
        raise TaskValidationError(msg)

    task = await task_service.update_notes(task_id=task_id, notes=body["notes"], actor=actor)
    return _ok(_dump(task))


@router.delete("/{task_id}", status_code=status.HTTP_200_OK)
async def delete_task(
    task_id: str,
    phone: str | None = None,
    scheduler: ReminderScheduler = Depends(get_reminder_scheduler),  # noqa: B008
) -> dict[str, Any]:
    """Delete a task. The deleter is shown as 'admin' when no phone is given."""
    await task_service.delete_task(task_id=task_id, scheduler=scheduler, actor=phone)
    return _ok({"message": "Task deleted successfully"})

"""Notification service for sending task messages over WhatsApp.

Every function here reports per-recipient outcomes and never raises: a failed
delivery must not undo the task change that triggered it.
"""

import logging
from datetime import UTC, datetime

from src.core import message_templates
from src.core.config import Constants
from src.core.errors import DeliveryFailure
from src.core.logging import span
from src.domain.task import Task
from src.interface import whatsapp_sender
from src.interface.whatsapp_sender import Button, SendMessageResult
from src.models.service_models import NotificationResult


logger = logging.getLogger(__name__)


def complete_button(task_id: str) -> Button:
    """'Mark as Done' quick-reply button for a task."""
    return Button(id=f"{Constants.COMPLETE_BUTTON_PREFIX}{task_id}", text=message_templates.MARK_AS_DONE)


async def _deliver(*, recipient: str, text: str, buttons: list[Button] | None = None) -> NotificationResult:
    """Send one message and turn the outcome into a NotificationResult."""
    try:
        if buttons:
            result = await whatsapp_sender.send_buttons_message(to_phone=recipient, text=text, buttons=buttons)
        else:
            result = await whatsapp_sender.send_text_message(to_phone=recipient, text=text)
    except Exception as e:
        result = SendMessageResult(success=False, error=f"{type(e).__name__}: {e}")

    if not result.success:
        failure = DeliveryFailure(recipient, result.error)
        logger.warning(str(failure), extra={"recipient": recipient, "error": result.error})
        return NotificationResult(recipient=recipient, success=False, error=failure.reason)

    return NotificationResult(recipient=recipient, success=True)


def _log_summary(event: str, task_id: str, results: list[NotificationResult]) -> None:
    logger.info(
        "Sent %s notifications (%d successful, %d failed)",
        event,
        sum(1 for r in results if r.success),
        sum(1 for r in results if not r.success),
        extra={"task_id": task_id},
    )


async def notify_task_created(*, task: Task) -> list[NotificationResult]:
    """Confirm a new task to its creator and announce it to each assignee.

    Assignees get a 'Mark as Done' button. An assignee who is also the creator
    only receives the creator confirmation.

    Args:
        task: The newly created task

    Returns:
        List of NotificationResult objects with send status
    """
    with span("notification_service.notify_task_created"):
        results = [
            await _deliver(
                recipient=task.creator,
                text=message_templates.task_created(
                    description=task.description,
                    assignees=task.assignees,
                    due_date=task.due_date,
                    task_id=task.id,
                ),
            )
        ]

        assignee_text = message_templates.task_assigned(
            description=task.description,
            creator=task.creator,
            due_date=task.due_date,
            notes=task.notes,
            task_id=task.id,
        )
        for assignee in task.assignees:
            if assignee == task.creator:
                continue
            results.append(await _deliver(recipient=assignee, text=assignee_text, buttons=[complete_button(task.id)]))

        _log_summary("task_created", task.id, results)
        return results


async def notify_task_completed(*, task: Task, completed_by: str) -> list[NotificationResult]:
    """Tell the creator and other assignees a task is done, and confirm to the completer.

    Args:
        task: The completed task
        completed_by: Normalized identity of whoever completed it

    Returns:
        List of NotificationResult objects with send status
    """
    with span("notification_service.notify_task_completed"):
        completed_at = task.completed_at or datetime.now(UTC)
        text = message_templates.task_completed(
            description=task.description,
            completed_by=completed_by,
            completed_at=completed_at,
            task_id=task.id,
        )

        results = [
            await _deliver(recipient=recipient, text=text)
            for recipient in task.participants()
            if recipient != completed_by
        ]
        results.append(
            await _deliver(
                recipient=completed_by,
                text=message_templates.task_completed_confirmation(description=task.description),
            )
        )

        _log_summary("task_completed", task.id, results)
        return results


async def notify_task_reopened(*, task: Task, reopened_by: str) -> list[NotificationResult]:
    """Tell the creator and assignees, other than the actor, that a task was reopened."""
    with span("notification_service.notify_task_reopened"):
        text = message_templates.task_reopened(description=task.description, reopened_by=reopened_by)
        results = [
            await _deliver(recipient=recipient, text=text)
            for recipient in task.participants()
            if recipient != reopened_by
        ]
        _log_summary("task_reopened", task.id, results)
        return results


async def notify_notes_updated(*, task: Task, updated_by: str) -> list[NotificationResult]:
    """Tell the creator and assignees, other than the actor, about new notes."""
    with span("notification_service.notify_notes_updated"):
        text = message_templates.notes_updated(description=task.description, updated_by=updated_by, notes=task.notes)
        results = [
            await _deliver(recipient=recipient, text=text)
            for recipient in task.participants()
            if recipient != updated_by
        ]
        _log_summary("notes_updated", task.id, results)
        return results


async def notify_task_deleted(*, task: Task, deleted_by: str) -> list[NotificationResult]:
    """Tell the creator and every assignee, once each, that a task was deleted.

    Args:
        task: Snapshot of the task taken before deletion
        deleted_by: Identity of the deleter, or 'admin'

    Returns:
        List of NotificationResult objects with send status
    """
    with span("notification_service.notify_task_deleted"):
        text = message_templates.task_deleted(
            description=task.description,
            deleted_by=deleted_by,
            deleted_at=datetime.now(UTC),
            task_id=task.id,
        )
        results = [await _deliver(recipient=recipient, text=text) for recipient in task.participants()]
        _log_summary("task_deleted", task.id, results)
        return results


async def send_task_reminder(*, task: Task) -> list[NotificationResult]:
    """Send the due-soon reminder to the creator and every assignee.

    Args:
        task: Current task snapshot (must have a due date)

    Returns:
        List of NotificationResult objects with send status
    """
    with span("notification_service.send_task_reminder"):
        if task.due_date is None:
            logger.warning("Reminder requested for task without due date", extra={"task_id": task.id})
            return []

        text = message_templates.task_reminder(description=task.description, due_date=task.due_date)
        results = [await _deliver(recipient=recipient, text=text) for recipient in task.participants()]
        _log_summary("task_reminder", task.id, results)
        return results


async def send_task_list(*, to_phone: str, tasks: list[Task], title: str) -> NotificationResult:
    """Send a numbered list of tasks to one recipient."""
    items = [(task.id, task.description, task.is_completed, task.due_date) for task in tasks]
    return await _deliver(recipient=to_phone, text=message_templates.task_list(title=title, items=items))

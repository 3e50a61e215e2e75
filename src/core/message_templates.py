"""Centralized message templates for WhatsApp notifications.

All user-facing message strings are defined here so wording can be changed in
one place.
"""

from datetime import datetime

from src.core.config import settings


MARK_AS_DONE = "Mark as Done"


def format_datetime(value: datetime) -> str:
    """Render a timestamp in the configured timezone, e.g. 'July 20, 2024 at 05:30 PM'."""
    return value.astimezone(settings.tz).strftime("%B %d, %Y at %I:%M %p")


def format_date(value: datetime | None) -> str:
    if value is None:
        return "No due date"
    return value.astimezone(settings.tz).strftime("%Y-%m-%d")


def _due_line(due_date: datetime | None) -> str:
    return f"Due: {format_datetime(due_date)}" if due_date else "No due date"


def task_created(*, description: str, assignees: list[str], due_date: datetime | None, task_id: str) -> str:
    return (
        f"✅ Task created successfully!\n\n"
        f"*{description}*\n"
        f"Assigned to: {', '.join(assignees)}\n"
        f"{_due_line(due_date)}\n"
        f"ID: {task_id}"
    )


def task_assigned(
    *,
    description: str,
    creator: str,
    due_date: datetime | None,
    notes: str | None,
    task_id: str,
) -> str:
    message = f"\U0001f4cb New task assigned to you!\n\n*{description}*\nFrom: {creator}\n{_due_line(due_date)}\n"
    if notes:
        message += f"Notes: {notes}\n"
    return message + f"ID: {task_id}"


def task_completed(*, description: str, completed_by: str, completed_at: datetime, task_id: str) -> str:
    return (
        f"✅ Task completed!\n\n"
        f"*{description}*\n"
        f"Completed by: {completed_by}\n"
        f"Completed on: {format_datetime(completed_at)}\n"
        f"ID: {task_id}"
    )


def task_completed_confirmation(*, description: str) -> str:
    return f"✅ Task marked as completed successfully!\n\n*{description}*"


def task_reopened(*, description: str, reopened_by: str) -> str:
    return f"\U0001f504 Task Reopened: \"{description}\" by {reopened_by}"


def notes_updated(*, description: str, updated_by: str, notes: str | None) -> str:
    return f"\U0001f4dd Notes updated for task \"{description}\" by {updated_by}:\nNew Notes: {notes or ''}"


def task_deleted(*, description: str, deleted_by: str, deleted_at: datetime, task_id: str) -> str:
    return (
        f"\U0001f5d1️ Task deleted!\n\n"
        f"*{description}*\n"
        f"Deleted by: {deleted_by}\n"
        f"Deleted on: {format_datetime(deleted_at)}\n"
        f"Task ID: {task_id}"
    )


def task_reminder(*, description: str, due_date: datetime) -> str:
    return f"\U0001f514 Reminder: Task \"{description}\" is due on {format_datetime(due_date)}."


def task_list(*, title: str, items: list[tuple[str, str, bool, datetime | None]]) -> str:
    """Build a numbered task list.

    Args:
        title: Heading for the list
        items: (task_id, description, completed, due_date) tuples
    """
    if not items:
        return "No tasks found. \U0001f389"

    lines = [f"\U0001f4cb *{title}*\n"]
    for index, (task_id, description, completed, due_date) in enumerate(items, start=1):
        marker = "✅" if completed else "⏳"
        due = f"Due: {format_date(due_date)}" if due_date else "No due date"
        lines.append(f"{index}. {marker} *{description}*\n   {due} | ID: {task_id}\n")
    return "\n".join(lines)


def help_text() -> str:
    return (
        "Available commands:\n"
        "/create <TASK>, <ASSIGNEE(S)>, <[Optional] Time>, <NOTES> - Create a new task\n"
        "/tasks - List all your active tasks\n"
        "/tasks/assignee - List tasks assigned to a specific person\n"
        "/tasks/assignee1:assignee2 - List tasks for multiple assignees\n"
        "/update <ID>, [description], [@assignees], [date] - Edit a task\n"
        "/help - Show this help message"
    )


def create_format_help() -> str:
    return (
        "Could not understand your task creation command.\n"
        "Format: /create Description, @assignee1 @assignee2, YYYY-MM-DD, notes"
    )


def update_format_help() -> str:
    return (
        "Could not understand your update command.\n"
        "Format: /update <ID>, [description], [@assignee1 @assignee2], [YYYY-MM-DD]"
    )


def task_updated(*, description: str, due_date: datetime | None, task_id: str) -> str:
    return f"✏️ Task updated!\n\n*{description}*\n{_due_line(due_date)}\nID: {task_id}"


def unknown_command() -> str:
    return "Unknown command. Type /help for available commands."

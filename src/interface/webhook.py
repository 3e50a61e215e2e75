"""WhatsApp webhook endpoints."""

import logging
import re
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from src.core import db_client, message_templates
from src.core.config import Constants
from src.core.db_client import sanitize_param
from src.core.errors import TaskError, classify_error_with_response
from src.core.scheduler import ReminderScheduler
from src.interface import command_parser, whatsapp_parser, whatsapp_sender
from src.interface.dependencies import get_reminder_scheduler
from src.services import notification_service, task_service
from src.services.authorization import authorize


router = APIRouter(prefix="/webhook", tags=["webhook"])
logger = logging.getLogger(__name__)

# Error messages
ERROR_MSG_BUTTON_PROCESSING_FAILED = (
    "Sorry, I couldn't process that button click. Please try typing your response instead."
)

_COMPLETE_PAYLOAD = re.compile(rf"{Constants.COMPLETE_BUTTON_PREFIX}(\w+)")


@router.post("")
async def receive_webhook(request: Request, background_tasks: BackgroundTasks) -> dict[str, str]:
    """Receive WAHA webhook POST requests.

    This endpoint:
    1. Parses JSON payload
    2. Ignores non-message events and the bot's own messages
    3. Dispatches message processing to background tasks
    4. Returns 200 OK immediately

    Args:
        request: FastAPI request object containing JSON data
        background_tasks: FastAPI BackgroundTasks for async processing

    Returns:
        Status dictionary

    Raises:
        HTTPException: If payload is not valid JSON
    """
    try:
        payload = await request.json()
    except Exception as e:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

    message = whatsapp_parser.parse_waha_webhook(payload)
    if not message:
        # Ignore non-message events (e.g., status updates, qr codes)
        return {"status": "ignored"}

    if message.from_me:
        return {"status": "ignored"}

    background_tasks.add_task(process_webhook_message, payload, get_reminder_scheduler(request))
    return {"status": "received"}


async def _send_response(*, message: whatsapp_parser.ParsedMessage, text: str) -> whatsapp_sender.SendMessageResult:
    """Reply to the sender of a message."""
    return await whatsapp_sender.send_text_message(to_phone=message.from_phone, text=text)


async def _claim_message(message: whatsapp_parser.ParsedMessage, message_type: str) -> bool:
    """Record a message as being processed.

    Returns:
        False if the message was already processed, True otherwise
    """
    existing = await db_client.get_first_record(
        collection="processed_messages",
        filter_query=f'message_id = "{sanitize_param(message.message_id)}"',
    )
    if existing:
        logger.info("Message %s already processed, skipping", message.message_id)
        return False

    try:
        await db_client.create_record(
            collection="processed_messages",
            data={
                "message_id": message.message_id,
                "from_phone": message.from_phone,
                "processed_at": datetime.now(UTC).isoformat(),
                "success": False,
                "error_message": f"{message_type} processing started",
            },
        )
    except db_client.DatabaseError:
        # Unique message_id: a concurrent delivery of the same message won
        logger.info("Message %s claimed concurrently, skipping", message.message_id)
        return False
    return True


async def _update_message_status(*, message_id: str, success: bool, error: str | None = None) -> None:
    """Update the processed message status in the database."""
    msg_record = await db_client.get_first_record(
        collection="processed_messages",
        filter_query=f'message_id = "{sanitize_param(message_id)}"',
    )
    if msg_record:
        await db_client.update_record(
            collection="processed_messages",
            record_id=msg_record["id"],
            data={"success": success, "error_message": error if not success else None},
        )


async def _reply_with_error(*, message: whatsapp_parser.ParsedMessage, error: Exception) -> tuple[bool, str]:
    """Send the user-facing explanation for a task error."""
    response = classify_error_with_response(error)
    await _send_response(message=message, text=f"{response.message}\n\n{response.suggestion}")
    return (False, str(error))


async def _handle_create(
    *, message: whatsapp_parser.ParsedMessage, text: str, scheduler: ReminderScheduler
) -> tuple[bool, str | None]:
    data = command_parser.parse_create_command(text, message.from_phone)
    if data is None:
        result = await _send_response(message=message, text=message_templates.create_format_help())
        return (False, result.error or "Malformed create command")

    # The creator is notified with a confirmation by the service
    await task_service.create_task(data=data, scheduler=scheduler)
    return (True, None)


async def _handle_update(
    *, message: whatsapp_parser.ParsedMessage, text: str, scheduler: ReminderScheduler
) -> tuple[bool, str | None]:
    parsed = command_parser.parse_update_command(text)
    if parsed is None:
        result = await _send_response(message=message, text=message_templates.update_format_help())
        return (False, result.error or "Malformed update command")

    task_id, patch = parsed
    # Chat edits are limited to the task's creator and assignees
    await authorize(task_id=task_id, actor=message.from_phone)
    task = await task_service.edit_task(task_id=task_id, patch=patch, scheduler=scheduler)

    result = await _send_response(
        message=message,
        text=message_templates.task_updated(description=task.description, due_date=task.due_date, task_id=task.id),
    )
    return (result.success, result.error)


async def _handle_tasks(*, message: whatsapp_parser.ParsedMessage, text: str) -> tuple[bool, str | None]:
    """Handle /tasks, /tasks/<assignee> and /tasks/<a>:<b>."""
    _, _, selector = text.partition("/tasks/")
    selector = selector.strip()

    if not selector:
        tasks = await task_service.list_tasks_for_user(message.from_phone, active_only=True)
        title = "Your Active Tasks"
    else:
        assignees = [a.strip() for a in selector.split(":") if a.strip()]
        if not assignees:
            result = await _send_response(message=message, text="Please specify at least one assignee.")
            return (result.success, result.error)
        tasks = await task_service.list_tasks_for_assignees(assignees)
        title = f"Tasks for {', '.join(assignees)}" if len(assignees) > 1 else f"Tasks assigned to {assignees[0]}"

    result = await notification_service.send_task_list(to_phone=message.from_phone, tasks=tasks, title=title)
    return (result.success, result.error)


async def _handle_command(
    *, message: whatsapp_parser.ParsedMessage, scheduler: ReminderScheduler
) -> tuple[bool, str | None]:
    """Dispatch a slash command.

    Returns:
        Tuple of (success, error_message)
    """
    text = (message.text or "").strip()
    command = text.split(maxsplit=1)[0].lower()

    try:
        if command == "/create":
            return await _handle_create(message=message, text=text, scheduler=scheduler)
        if command == "/update":
            return await _handle_update(message=message, text=text, scheduler=scheduler)
        if command == "/tasks" or command.startswith("/tasks/"):
            return await _handle_tasks(message=message, text=text)
        if command == "/help":
            result = await _send_response(message=message, text=message_templates.help_text())
            return (result.success, result.error)
    except TaskError as e:
        return await _reply_with_error(message=message, error=e)

    await _send_response(message=message, text=message_templates.unknown_command())
    return (False, f"Unknown command: {command}")


async def _handle_button_payload(
    *, message: whatsapp_parser.ParsedMessage, scheduler: ReminderScheduler
) -> tuple[bool, str | None]:
    """Handle a 'Mark as Done' button click.

    Parses payload format: complete_{task_id}, possibly with a provider prefix.

    Returns:
        Tuple of (success, error_message)
    """
    payload = message.button_payload or ""
    match = _COMPLETE_PAYLOAD.search(payload)
    if not match:
        logger.error("Invalid button payload format: %s", payload)
        await _send_response(message=message, text=ERROR_MSG_BUTTON_PROCESSING_FAILED)
        return (False, f"Invalid payload format: {payload}")

    task_id = match.group(1)
    try:
        # Confirmation to the sender is part of the completion notifications
        await task_service.complete_task(task_id=task_id, actor=message.from_phone, scheduler=scheduler)
    except TaskError as e:
        return await _reply_with_error(message=message, error=e)

    logger.info("Task %s completed via button click from %s", task_id, message.from_phone)
    return (True, None)


async def _handle_button_message(message: whatsapp_parser.ParsedMessage, scheduler: ReminderScheduler) -> None:
    if not await _claim_message(message, "Button"):
        return

    logger.info("Processing button click from %s: %s", message.from_phone, message.button_payload)
    success, error = await _handle_button_payload(message=message, scheduler=scheduler)
    await _update_message_status(message_id=message.message_id, success=success, error=error)


async def _handle_text_message(message: whatsapp_parser.ParsedMessage, scheduler: ReminderScheduler) -> None:
    if not await _claim_message(message, "Command"):
        return

    logger.info("Processing command from %s: %s", message.from_phone, message.text)
    success, error = await _handle_command(message=message, scheduler=scheduler)
    await _update_message_status(message_id=message.message_id, success=success, error=error)


async def _route_webhook_message(message: whatsapp_parser.ParsedMessage, scheduler: ReminderScheduler) -> None:
    """Route message to appropriate handler based on type."""
    if message.message_type == "button_reply" and message.button_payload:
        await _handle_button_message(message, scheduler)
    elif message.text and message.text.strip().startswith(Constants.COMMAND_PREFIX):
        await _handle_text_message(message, scheduler)
    else:
        logger.info("Non-command message from %s ignored", message.from_phone)


async def _handle_webhook_error(e: Exception, params: dict[str, Any]) -> None:
    """Handle unexpected errors during webhook processing."""
    error_response = classify_error_with_response(e)
    logger.error(
        "Error processing webhook message: %s",
        e,
        extra={
            "error_code": error_response.code,
            "severity": error_response.severity.value,
            "error_message": error_response.message,
        },
    )

    try:
        parsed_message = whatsapp_parser.parse_waha_webhook(params)
        if parsed_message:
            try:
                await _update_message_status(message_id=parsed_message.message_id, success=False, error=str(e))
            except Exception as update_error:
                logger.error("Failed to update processed message record: %s", update_error)

            await whatsapp_sender.send_text_message(
                to_phone=parsed_message.from_phone,
                text=f"{error_response.message}\n\n{error_response.suggestion}",
            )
    except Exception as send_error:
        logger.error("Failed to send error message to user: %s", send_error)


async def process_webhook_message(params: dict[str, Any], scheduler: ReminderScheduler) -> None:
    """Process WAHA webhook message in background.

    Args:
        params: JSON payload from WAHA webhook
        scheduler: The process's reminder scheduler
    """
    try:
        message = whatsapp_parser.parse_waha_webhook(params)
        if message and not message.from_me:
            await _route_webhook_message(message, scheduler)
    except Exception as e:
        await _handle_webhook_error(e, params)

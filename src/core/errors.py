"""Task error taxonomy and classification into user-facing responses."""

from enum import Enum, StrEnum

from pydantic import BaseModel


class TaskError(Exception):
    """Base class for task lifecycle errors surfaced to callers."""


class TaskValidationError(TaskError, ValueError):
    """Input had the wrong shape (empty description, no assignees, forbidden fields)."""


class TaskNotFoundError(TaskError, KeyError):
    """No task exists for the given id."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id

    def __str__(self) -> str:
        # KeyError wraps its message in quotes otherwise
        return str(self.args[0])


class ForbiddenError(TaskError, PermissionError):
    """Actor is neither the creator nor an assignee of the task."""

    def __init__(self, task_id: str, actor: str) -> None:
        super().__init__(f"Permission denied: {actor} is not the creator or an assignee of task {task_id}")
        self.task_id = task_id
        self.actor = actor


class DeliveryFailure(Exception):
    """A notification could not be delivered.

    Only ever raised and caught inside the notification layer; never fatal to the
    state transition that triggered the notification.
    """

    def __init__(self, recipient: str, reason: str | None) -> None:
        super().__init__(f"Delivery to {recipient} failed: {reason or 'unknown error'}")
        self.recipient = recipient
        self.reason = reason


class SchedulingSkip(StrEnum):
    """Why a reminder was not armed. Not an error."""

    NO_DUE_DATE = "no_due_date"
    WINDOW_ELAPSED = "window_elapsed"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_NETWORK_ERROR = "ERR_NETWORK_ERROR"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_NETWORK_PHRASES = ("connection", "timeout", "network", "unreachable", "502", "503", "504")


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised while handling a command or request

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, TaskNotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_NOT_FOUND,
            message="I couldn't find that task.",
            suggestion="Use /tasks to see your current tasks and their IDs.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ForbiddenError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="Only the task creator or its assignees can do that.",
            suggestion="Ask the task creator to make the change.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, TaskValidationError):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception),
            suggestion="Format: /create Description, @assignee1 @assignee2, YYYY-MM-DD, notes",
            severity=ErrorSeverity.LOW,
        )

    error_str = str(exception).lower()
    if isinstance(exception, ConnectionError | TimeoutError) or any(p in error_str for p in _NETWORK_PHRASES):
        return ErrorResponse(
            code=ErrorCode.ERR_NETWORK_ERROR,
            message="Network error occurred.",
            suggestion="Please try again in a moment.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="There was an error processing your request.",
        suggestion="Please try again. Type /help for available commands.",
        severity=ErrorSeverity.MEDIUM,
    )

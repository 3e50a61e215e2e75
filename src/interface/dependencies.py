"""FastAPI dependencies shared by routers."""

from fastapi import Request

from src.core.scheduler import ReminderScheduler


def get_reminder_scheduler(request: Request) -> ReminderScheduler:
    """Return the process's reminder scheduler, created in the app lifespan."""
    return request.app.state.reminder_scheduler

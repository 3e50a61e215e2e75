"""taskbot - task tracking and reminders living in WhatsApp."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.config import constants, settings
from src.core.db_client import close_connection, init_db
from src.core.errors import TaskError
from src.core.logging import configure_logfire, instrument_fastapi
from src.core.scheduler import ReminderScheduler
from src.interface.task_router import router as task_router, task_error_handler
from src.interface.webhook import router as webhook_router


logger = logging.getLogger(__name__)


async def check_waha_connectivity() -> bool:
    """Check WAHA connectivity.

    Tasks and reminders keep working without WAHA; messages fail and are logged
    until it comes back, so this only warns.

    Returns:
        True if WAHA answered successfully
    """
    url = f"{settings.waha_base_url}/api/sessions"
    headers = {}
    if settings.waha_api_key:
        headers["X-Api-Key"] = settings.waha_api_key

    try:
        async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
            response = await client.get(url, headers=headers)
    except Exception as e:
        logger.warning("startup_validation", extra={"service": "waha", "status": "unreachable", "error": str(e)})
        return False

    if not response.is_success:
        logger.warning(
            "startup_validation",
            extra={"service": "waha", "status": "failed", "status_code": response.status_code},
        )
        return False

    logger.info("startup_validation", extra={"service": "waha", "status": "ok"})
    return True


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    # Configure logging first so startup logs are captured
    configure_logfire()

    await check_waha_connectivity()

    await init_db()
    logger.info("Database initialized")

    scheduler = ReminderScheduler()
    scheduler.init()
    app.state.reminder_scheduler = scheduler
    await scheduler.reconcile_from_store()

    yield

    # Shutdown
    scheduler.shutdown()
    await close_connection()


app = FastAPI(
    title="taskbot",
    description="Task tracking and reminders living in WhatsApp",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(webhook_router)
app.include_router(task_router)
app.add_exception_handler(TaskError, task_error_handler)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/scheduler")
async def scheduler_health_check(request: Request) -> JSONResponse:
    """Reminder scheduler health check with the number of pending reminders."""
    scheduler: ReminderScheduler | None = getattr(request.app.state, "reminder_scheduler", None)
    if scheduler is None:
        return JSONResponse(content={"status": "unavailable", "pending_reminders": 0}, status_code=503)

    running = scheduler.running
    return JSONResponse(
        content={
            "status": "healthy" if running else "stopped",
            "running": running,
            "pending_reminders": len(scheduler),
        },
        status_code=200 if running else 503,
    )

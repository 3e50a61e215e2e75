"""Reminder scheduler: one pending one-shot reminder per open task with a due date."""

import logging
import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from src.core import db_client
from src.core.config import Constants, settings
from src.core.errors import SchedulingSkip
from src.domain.task import Task, TaskStatus
from src.services import notification_service


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderEntry:
    """A live timer entry: one armed reminder for one task."""

    task_id: str
    run_at: datetime
    token: str
    job: Job


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ReminderScheduler:
    """Owns the table of pending reminder timers for this process.

    Table membership is the state of a task's reminder: an entry means the
    reminder is armed, no entry means it was never armed, already fired, or
    was cancelled. Every arming gets a fresh token, so a job left over from an
    earlier arming can never claim a newer entry.

    The lock guards only check-and-set and check-and-clear on the table and is
    never held across an ``await``.
    """

    def __init__(
        self,
        backend: AsyncIOScheduler | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
        lead_time: timedelta | None = None,
    ) -> None:
        self._backend = backend or AsyncIOScheduler(timezone=settings.tz)
        self._clock = clock or _utc_now
        self._lead_time = lead_time if lead_time is not None else settings.reminder_lead
        self._entries: dict[str, ReminderEntry] = {}
        self._lock = threading.Lock()

    def init(self) -> None:
        """Start the timer backend.

        This should be called during FastAPI app startup.
        """
        if not self._backend.running:
            self._backend.start()
        logger.info("Reminder scheduler started")

    def shutdown(self) -> None:
        """Cancel every pending reminder and stop the timer backend.

        This should be called during FastAPI app shutdown.
        """
        for task_id in self.pending_task_ids():
            self.cancel(task_id)
        if self._backend.running:
            self._backend.shutdown(wait=False)
        logger.info("Reminder scheduler stopped")

    @property
    def running(self) -> bool:
        return self._backend.running

    def reminder_time(self, task: Task) -> datetime | None:
        """When the reminder for a task should fire, or None without a due date."""
        if task.due_date is None:
            return None
        return task.due_date - self._lead_time

    def schedule(self, task: Task) -> datetime | None:
        """Arm a one-shot reminder for a task, replacing any existing one.

        Nothing is armed when the task has no due date or its reminder time is
        not in the future. Any entry from an earlier arming is dropped in that
        case too, so the latest call always wins.

        Args:
            task: Current task snapshot

        Returns:
            The time the reminder will fire, or None when it was skipped
        """
        run_at = self.reminder_time(task)
        if run_at is None:
            self._log_skip(task.id, SchedulingSkip.NO_DUE_DATE)
            self.cancel(task.id)
            return None

        now = self._clock()
        if run_at <= now:
            self._log_skip(task.id, SchedulingSkip.WINDOW_ELAPSED, run_at=run_at)
            self.cancel(task.id)
            return None

        token = uuid.uuid4().hex
        job = self._backend.add_job(
            self.fire,
            trigger=DateTrigger(run_date=run_at, timezone=UTC),
            args=[task.id, token],
            id=f"{Constants.REMINDER_JOB_PREFIX}:{task.id}:{token}",
            name=f"Task reminder {task.id}",
            misfire_grace_time=Constants.REMINDER_MISFIRE_GRACE_SECONDS,
        )
        entry = ReminderEntry(task_id=task.id, run_at=run_at, token=token, job=job)

        with self._lock:
            previous = self._entries.get(task.id)
            self._entries[task.id] = entry

        if previous is not None:
            self._remove_job(previous)

        logger.info(
            "Reminder scheduled",
            extra={"task_id": task.id, "run_at": run_at.isoformat(), "replaced": previous is not None},
        )
        return run_at

    def reschedule(self, task: Task) -> datetime | None:
        """Re-arm the reminder after a due date change. Same as schedule()."""
        return self.schedule(task)

    def cancel(self, task_id: str) -> bool:
        """Cancel the pending reminder for a task.

        Returns:
            True if an entry was removed, False if there was none
        """
        with self._lock:
            entry = self._entries.pop(task_id, None)

        if entry is None:
            return False

        self._remove_job(entry)
        logger.info("Reminder cancelled", extra={"task_id": task_id})
        return True

    async def fire(self, task_id: str, token: str) -> bool:
        """Deliver a matured reminder.

        The entry is claimed under the lock first; a job whose token no longer
        matches the table (cancelled or replaced) stops here without any I/O.
        The task is then re-read from the store, and nothing is sent when it is
        gone or completed. Firing consumes the entry under every outcome and is
        never retried.

        Args:
            task_id: Task the reminder belongs to
            token: Token issued when this reminder was armed

        Returns:
            True if a reminder was dispatched, False otherwise
        """
        with self._lock:
            entry = self._entries.get(task_id)
            if entry is None or entry.token != token:
                claimed = False
            else:
                del self._entries[task_id]
                claimed = True

        if not claimed:
            logger.info("Stale reminder ignored", extra={"task_id": task_id})
            return False

        try:
            task = await self._load_task(task_id)
            if task is None:
                logger.info("Reminder dropped, task no longer exists", extra={"task_id": task_id})
                return False
            if task.status == TaskStatus.COMPLETED:
                logger.info("Reminder dropped, task already completed", extra={"task_id": task_id})
                return False

            results = await notification_service.send_task_reminder(task=task)
        except Exception as e:
            logger.error(
                "Reminder firing abandoned",
                extra={"task_id": task_id, "error": str(e), "error_type": type(e).__name__},
            )
            return False

        failed = [r.recipient for r in results if not r.success]
        logger.info("Reminder sent", extra={"task_id": task_id, "recipients": len(results), "failed": failed})
        return True

    async def reconcile_from_store(self) -> int:
        """Arm reminders for every open task with a due date.

        Called once at startup. Tasks whose reminder window already passed are
        skipped for this process lifetime.

        Returns:
            Number of reminders armed
        """
        records = await db_client.list_all_records(
            collection="tasks",
            filter_query='status = "OPEN" && due_date != ""',
        )

        armed = 0
        for record in records:
            try:
                task = Task.from_record(record)
            except ValueError as e:
                logger.warning("Skipping unreadable task record", extra={"record_id": record.get("id"), "error": str(e)})
                continue
            if self.schedule(task) is not None:
                armed += 1

        logger.info("Reminders reconciled from store", extra={"open_tasks": len(records), "armed": armed})
        return armed

    def get_entry(self, task_id: str) -> ReminderEntry | None:
        with self._lock:
            return self._entries.get(task_id)

    def has_pending(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._entries

    def pending_task_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def _load_task(self, task_id: str) -> Task | None:
        try:
            record = await db_client.get_record(collection="tasks", record_id=task_id)
        except db_client.RecordNotFoundError:
            return None
        return Task.from_record(record)

    def _remove_job(self, entry: ReminderEntry) -> None:
        try:
            entry.job.remove()
        except JobLookupError:
            # Already ran or already removed
            logger.debug("Reminder job already gone", extra={"task_id": entry.task_id, "job_id": entry.job.id})

    def _log_skip(self, task_id: str, reason: SchedulingSkip, run_at: datetime | None = None) -> None:
        logger.info(
            "Reminder not scheduled",
            extra={"task_id": task_id, "reason": reason.value, "run_at": run_at.isoformat() if run_at else None},
        )

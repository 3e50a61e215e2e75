#!/usr/bin/env python3
"""Seed the database with sample tasks for local development.

Writes straight to the store, so nobody is messaged. Reminders for the open
tasks are armed the next time the app starts.

Run from the project root: python -m scripts.seed_tasks
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from src.core import db_client
from src.core.identity import normalize_identities, normalize_identity
from src.domain.task import TaskStatus


logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def _sample_tasks(now: datetime) -> list[dict]:
    return [
        {
            "description": "Complete project documentation",
            "creator": "+1234567890",
            "assignees": ["+1234567890", "+9876543210"],
            "due_date": now + timedelta(days=7),
            "notes": "Include API documentation and setup instructions",
            "status": TaskStatus.OPEN,
        },
        {
            "description": "Review pull requests",
            "creator": "+9876543210",
            "assignees": ["+1234567890"],
            "due_date": now + timedelta(days=2),
            "notes": "Check code quality and test coverage",
            "status": TaskStatus.OPEN,
        },
        {
            "description": "Deploy to production",
            "creator": "+1234567890",
            "assignees": ["+9876543210", "+1122334455"],
            "due_date": now - timedelta(days=1),
            "notes": "Follow deployment checklist",
            "status": TaskStatus.COMPLETED,
        },
    ]


async def seed() -> int:
    await db_client.init_db()
    now = datetime.now(UTC)

    created = 0
    try:
        for sample in _sample_tasks(now):
            record = await db_client.create_record(
                collection="tasks",
                data={
                    "description": sample["description"],
                    "creator": normalize_identity(sample["creator"]),
                    "assignees": normalize_identities(sample["assignees"]),
                    "due_date": sample["due_date"],
                    "notes": sample["notes"],
                    "status": sample["status"].value,
                    "created_at": now,
                    "completed_at": now if sample["status"] == TaskStatus.COMPLETED else None,
                },
            )
            logger.info(f"Created task {record['id']}: {record['description']}")
            created += 1
    finally:
        await db_client.close_connection()

    return created


def main() -> None:
    created = asyncio.run(seed())
    logger.info(f"Seeded {created} tasks into {db_client.get_db_path()}")


if __name__ == "__main__":
    main()

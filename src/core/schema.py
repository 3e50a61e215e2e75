"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


# Central list of all collections in the schema
COLLECTIONS = ["tasks", "processed_messages"]


_TABLES: dict[str, str] = {
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            description TEXT NOT NULL CHECK (length(trim(description)) > 0),
            creator TEXT NOT NULL,
            assignees TEXT NOT NULL CHECK (json_array_length(assignees) > 0),
            due_date TEXT,
            notes TEXT,
            status TEXT NOT NULL DEFAULT 'OPEN' CHECK (status IN ('OPEN', 'COMPLETED')),
            created_at TEXT NOT NULL,
            completed_at TEXT,
            CHECK ((status = 'COMPLETED') = (completed_at IS NOT NULL))
        )
    """,
    "processed_messages": """
        CREATE TABLE IF NOT EXISTS processed_messages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            message_id TEXT NOT NULL UNIQUE,
            from_phone TEXT NOT NULL,
            processed_at TEXT NOT NULL,
            success INTEGER NOT NULL DEFAULT 0,
            error_message TEXT
        )
    """,
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks (status)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_creator ON tasks (creator)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_due_date ON tasks (due_date)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist yet."""
    conn = await db_client.get_connection(db_path=db_path)

    for name in COLLECTIONS:
        await conn.execute(_TABLES[name])
    for index in _INDEXES:
        await conn.execute(index)
    await conn.commit()

    logger.info("Database schema initialized", extra={"collections": COLLECTIONS})

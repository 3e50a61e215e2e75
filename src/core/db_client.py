"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from src.core.config import Constants, settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a database operation fails."""


class RecordNotFoundError(KeyError):
    """Raised when a record does not exist."""


# Columns stored as JSON text and decoded on read
JSON_FIELDS = {"assignees"}


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _to_record(columns: list[str], row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert a row into a record dict with string IDs and decoded JSON fields."""
    record = dict(zip(columns, row, strict=True))
    if isinstance(record.get("id"), int):
        record["id"] = str(record["id"])
    for field in JSON_FIELDS & record.keys():
        if isinstance(record[field], str):
            record[field] = json.loads(record[field])
    return record


def _to_db_value(val: Any) -> Any:
    if isinstance(val, datetime):
        return val.isoformat()
    if isinstance(val, dict | list):
        return json.dumps(val)
    return val


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


FilterParam = str | bool

_COMPARISON = re.compile(r"""(\w+)\s*(\?=|!=|>=|<=|=|>|<|~)\s*(['"])([^'"]*)\3""")


def _split_top_level(expression: str, separator: str) -> list[str]:
    """Split on ``separator`` wherever it sits outside parentheses."""
    parts = []
    depth = 0
    start = 0
    i = 0
    while i < len(expression):
        char = expression[i]
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and expression.startswith(separator, i):
            parts.append(expression[start:i].strip())
            i += len(separator)
            start = i
            continue
        i += 1
    parts.append(expression[start:].strip())
    return parts


def _condition(comparison: str) -> tuple[str, FilterParam]:
    """Translate one ``field op "value"`` comparison.

    ``field ?= "value"`` matches when a JSON array column contains the value.
    """
    match = _COMPARISON.fullmatch(comparison)
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)
    field, op, _, value = match.groups()

    if op == "?=":
        return f"EXISTS (SELECT 1 FROM json_each({field}) WHERE json_each.value = ?)", value
    if op == "~":
        escaped = value.replace("%", r"\%").replace("_", r"\_")
        return f"{field} LIKE ? ESCAPE '\\'", f"%{escaped}%"
    if value == "" and op in ("=", "!="):
        # Unset columns are NULL
        return f"COALESCE({field}, '') {op} ?", value
    if value.lower() in ("true", "false"):
        return f"{field} {op} ?", value.lower() == "true"
    return f"{field} {op} ?", value


def _join(parts: list[str], keyword: str) -> tuple[str, list[FilterParam]]:
    clauses = []
    params: list[FilterParam] = []
    for part in parts:
        clause, part_params = _expression(part)
        clauses.append(clause)
        params.extend(part_params)
    return f" {keyword} ".join(clauses), params


def _expression(expression: str) -> tuple[str, list[FilterParam]]:
    conjuncts = _split_top_level(expression, "&&")
    if len(conjuncts) > 1:
        return _join(conjuncts, "AND")

    disjuncts = _split_top_level(expression, "||")
    if len(disjuncts) > 1:
        clause, params = _join(disjuncts, "OR")
        return f"({clause})", params

    if expression.startswith("(") and expression.endswith(")"):
        return _expression(expression[1:-1].strip())

    clause, param = _condition(expression)
    return clause, [param]


def parse_filter(filter_query: str) -> tuple[str, list[FilterParam]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list.

    Comparisons join with ``&&`` and ``||``; parentheses group them.
    """
    if not filter_query:
        return "", []
    return _expression(filter_query.strip())


def _parse_sort(sort: str) -> str:
    """Translate ``-field,field2`` sort syntax into an ORDER BY clause."""
    clauses = []
    for raw in sort.split(","):
        token = raw.strip()
        direction = "DESC" if token.startswith("-") else "ASC"
        field = token.lstrip("+-")
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", field):
            logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
            return "id ASC"
        # NULLs sort last regardless of direction
        clauses.append(f"{field} IS NULL, {field} {direction}")
    return ", ".join(clauses) or "id ASC"


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    # Create new connection with async lock to prevent races
    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    async with _db_lock:
        conn = _db_connections.pop(cache_key, None)
        if conn is None:
            return
        try:
            await conn.close()
            logger.info("Closed SQLite connection", extra={"db_path": str(path)})
        except Exception as e:
            logger.warning("Error closing SQLite connection", extra={"error": str(e), "db_path": str(path)})


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from src.core import schema

    await schema.init_db(db_path=db_path)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        columns = list(data.keys())
        columns_str = ", ".join(columns)
        placeholders_str = ", ".join("?" for _ in columns)
        values = [_to_db_value(data[key]) for key in columns]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        record_id = cursor.lastrowid
    except aiosqlite.Error as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.info("Created record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=str(record_id))


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not record_id.isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        conn = await get_connection()
        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        row = await cursor.fetchone()
    except aiosqlite.Error as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if row is None:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    columns = [description[0] for description in cursor.description]
    return _to_record(columns, row)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    _validate_collection_name(collection)
    if not record_id.isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        conn = await get_connection()

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_to_db_value(val) for val in data.values()]
        values.append(int(record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return await get_record(collection=collection, record_id=record_id)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    _validate_collection_name(collection)
    if not record_id.isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    try:
        conn = await get_connection()
        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (int(record_id),))
        await conn.commit()
    except aiosqlite.Error as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise DatabaseError(msg) from e

    if cursor.rowcount == 0:
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    _validate_collection_name(collection)
    try:
        conn = await get_connection()

        where_clause = ""
        params: list[Any] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        order_by = _parse_sort(sort) if sort else "id ASC"
        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {order_by} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
    except aiosqlite.Error as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e

    columns = [description[0] for description in cursor.description]
    records = [_to_record(columns, row) for row in rows]

    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, filter_query=filter_query, per_page=1)
    return records[0] if records else None


async def list_all_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
    per_page: int | None = None,
) -> list[dict[str, Any]]:
    """List every matching record, fetching page after page until one comes back short."""
    page_size = per_page or Constants.DEFAULT_PER_PAGE_LIMIT
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection, page=page, per_page=page_size, filter_query=filter_query, sort=sort
        )
        records.extend(batch)
        if len(batch) < page_size:
            return records
        page += 1

"""Parse chat commands into structured task input.

Every parser returns None for input it cannot understand; callers reply with
format help.
"""

import logging
import re
from datetime import datetime, time, timedelta
from typing import Any

from dateutil import parser as date_parser
from pydantic import ValidationError

from src.core.config import settings
from src.domain.create_models import TaskCreate


logger = logging.getLogger(__name__)

_MENTION = re.compile(r"@(\S+)")
_PHONE = re.compile(r"(?<!\d)\+?\d{10,15}(?!\d)")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}(:\d{2})?([+-]\d{2}:?\d{2}|Z)?$")
_UPDATE_HEAD = re.compile(r"^\s*([^\s,]+)\s*,?\s*(.*)$", re.DOTALL)

END_OF_DAY = time(23, 59)


def extract_assignees(text: str) -> list[str]:
    """Pull assignee identities out of text.

    @mentions win; without any, bare phone numbers of 10 to 15 digits are used.
    """
    if not text:
        return []

    mentions = _MENTION.findall(text)
    if mentions:
        return mentions

    return _PHONE.findall(text)


def _localize(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=settings.tz)
    return value


def parse_due_date(text: str, *, now: datetime | None = None) -> datetime | None:
    """Parse a due date in the configured timezone.

    Accepts ``YYYY-MM-DD`` (midnight), ISO datetimes, ``today`` (end of day),
    ``tomorrow`` and ``next week`` (same time of day, one and seven days out),
    and anything else dateutil can read unambiguously.

    Returns:
        Timezone-aware datetime, or None when the text is not a date
    """
    if not text or not text.strip():
        return None

    cleaned = text.strip()
    lowered = cleaned.lower()
    current = (now or datetime.now(settings.tz)).astimezone(settings.tz)

    if lowered == "today":
        return datetime.combine(current.date(), END_OF_DAY, tzinfo=settings.tz)
    if lowered == "tomorrow":
        return current + timedelta(days=1)
    if lowered == "next week":
        return current + timedelta(days=7)

    if _ISO_DATE.match(cleaned) or _ISO_DATETIME.match(cleaned):
        try:
            return _localize(datetime.fromisoformat(cleaned.replace("Z", "+00:00")))
        except ValueError:
            return None

    # Needs at least one digit so plain words ("notes", "march") are never dates
    if not any(ch.isdigit() for ch in cleaned):
        return None

    midnight = datetime.combine(current.date(), time.min)
    try:
        parsed = date_parser.parse(cleaned, default=midnight)
    except (date_parser.ParserError, ValueError, OverflowError):
        return None
    return _localize(parsed)


def _strip_command(text: str, command: str) -> str:
    stripped = text.strip()
    if stripped.lower().startswith(command):
        return stripped[len(command) :].strip()
    return stripped


def parse_create_command(text: str, sender: str) -> TaskCreate | None:
    """Parse ``/create Description, @assignee1 @assignee2, [date], [notes]``.

    Args:
        text: Command text, with or without the leading ``/create``
        sender: Identity of the sender, who becomes the creator

    Returns:
        Validated TaskCreate, or None if the command is malformed
    """
    body = _strip_command(text or "", "/create")
    parts = [part.strip() for part in body.split(",")]
    if len(parts) < 2:  # noqa: PLR2004
        return None

    description, assignees_part, *rest = parts
    assignees = extract_assignees(assignees_part)
    if not description or not assignees:
        return None

    data: dict[str, Any] = {"description": description, "creator": sender, "assignees": assignees}
    if rest:
        due_date = parse_due_date(rest[0])
        if due_date is not None:
            data["due_date"] = due_date
    if len(rest) > 1:
        notes = ", ".join(rest[1:]).strip()
        if notes:
            data["notes"] = notes

    try:
        return TaskCreate(**data)
    except ValidationError as e:
        logger.info("Rejected create command", extra={"error": str(e)})
        return None


def parse_update_command(text: str) -> tuple[str, dict[str, Any]] | None:
    """Parse ``/update <id>, [description], [@assignees], [date]``.

    Fields may come in any order after the ID: a part with an @mention is the
    assignee list, a part that parses as a date is the due date, and the first
    remaining part is the description.

    Returns:
        (task_id, patch) or None if the command is malformed or changes nothing
    """
    body = _strip_command(text or "", "/update")
    match = _UPDATE_HEAD.match(body)
    if not match or not match.group(1):
        return None

    task_id, remainder = match.group(1), match.group(2)
    patch: dict[str, Any] = {}

    for part in (p.strip() for p in remainder.split(",")):
        if not part:
            continue
        if "@" in part and "assignees" not in patch:
            patch["assignees"] = extract_assignees(part)
            continue
        if "due_date" not in patch:
            due_date = parse_due_date(part)
            if due_date is not None:
                patch["due_date"] = due_date
                continue
        if "description" not in patch:
            patch["description"] = part

    if not patch:
        return None
    return task_id, patch

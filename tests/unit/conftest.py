"""Pytest configuration and fixtures for unit tests."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.core.scheduler import ReminderScheduler
from src.interface.whatsapp_sender import SendMessageResult
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    return in_memory_db


class MessageRecorder:
    """Captures outgoing WhatsApp messages instead of calling WAHA."""

    def __init__(self) -> None:
        self.send_text = AsyncMock(return_value=SendMessageResult(success=True, message_id="mock_message_id"))
        self.send_buttons = AsyncMock(return_value=SendMessageResult(success=True, message_id="mock_message_id"))

    @property
    def sent(self) -> list[tuple[str, str]]:
        """(recipient, text) for every message sent, text messages first."""
        calls = [*self.send_text.call_args_list, *self.send_buttons.call_args_list]
        return [(c.kwargs["to_phone"], c.kwargs["text"]) for c in calls]

    def recipients(self) -> list[str]:
        return [recipient for recipient, _ in self.sent]

    def texts_to(self, recipient: str) -> list[str]:
        return [text for to_phone, text in self.sent if to_phone == recipient]

    def reset(self) -> None:
        self.send_text.reset_mock()
        self.send_buttons.reset_mock()


@pytest.fixture
def messages(monkeypatch) -> MessageRecorder:
    """Patches the WhatsApp sender so tests can inspect every outgoing message."""
    recorder = MessageRecorder()
    monkeypatch.setattr("src.interface.whatsapp_sender.send_text_message", recorder.send_text)
    monkeypatch.setattr("src.interface.whatsapp_sender.send_buttons_message", recorder.send_buttons)
    return recorder


class FakeClock:
    """Manually advanced clock for the reminder scheduler."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime.now(UTC).replace(microsecond=0))


@pytest.fixture
def scheduler(clock):
    """ReminderScheduler on a never-started backend; jobs stay pending until fired by hand."""
    reminder_scheduler = ReminderScheduler(
        AsyncIOScheduler(timezone=UTC),
        clock=clock,
        lead_time=timedelta(hours=6),
    )
    yield reminder_scheduler
    reminder_scheduler.shutdown()

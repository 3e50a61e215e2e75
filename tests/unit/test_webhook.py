"""Tests for WhatsApp webhook endpoints."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException

from src.interface.webhook import ERROR_MSG_BUTTON_PROCESSING_FAILED, process_webhook_message, receive_webhook


def _payload(body: str | None = None, *, sender: str = "111", msg_id: str = "msg_1", **extra) -> dict:
    payload = {"id": msg_id, "from": f"{sender}@c.us", "body": body, "timestamp": 1720000000, "type": "chat"}
    payload.update(extra)
    return {"event": "message", "payload": payload}


def _button(task_id: str, *, sender: str, msg_id: str = "btn_1") -> dict:
    return _payload(
        "Mark as Done",
        sender=sender,
        msg_id=msg_id,
        type="buttons_response",
        selectedButtonId=f"complete_{task_id}",
    )


def _request(payload: dict | Exception, scheduler=None) -> MagicMock:
    request = MagicMock()
    if isinstance(payload, Exception):
        request.json = AsyncMock(side_effect=payload)
    else:
        request.json = AsyncMock(return_value=payload)
    request.app.state.reminder_scheduler = scheduler
    return request


class TestReceiveWebhook:
    """Test webhook endpoint."""

    @pytest.mark.asyncio
    async def test_receive_webhook_valid(self):
        scheduler = MagicMock()
        payload = _payload("/tasks")
        background_tasks = MagicMock()

        result = await receive_webhook(_request(payload, scheduler), background_tasks)

        assert result == {"status": "received"}
        background_tasks.add_task.assert_called_once_with(process_webhook_message, payload, scheduler)

    @pytest.mark.asyncio
    async def test_receive_webhook_invalid_json(self):
        with pytest.raises(HTTPException) as exc_info:
            await receive_webhook(_request(ValueError("Invalid JSON")), MagicMock())

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_receive_webhook_ignored_event(self):
        background_tasks = MagicMock()

        result = await receive_webhook(_request({"event": "session.status"}), background_tasks)

        assert result == {"status": "ignored"}
        background_tasks.add_task.assert_not_called()

    @pytest.mark.asyncio
    async def test_receive_webhook_ignores_own_messages(self):
        background_tasks = MagicMock()

        result = await receive_webhook(_request(_payload("/tasks", fromMe=True)), background_tasks)

        assert result == {"status": "ignored"}
        background_tasks.add_task.assert_not_called()


@pytest.mark.unit
class TestProcessWebhookMessage:
    """End-to-end command handling against the in-memory database."""

    async def _create(self, patched_db, messages, scheduler, *, msg_id: str = "create_1") -> str:
        await process_webhook_message(
            _payload("/create Buy milk, @222, 2030-01-01, Full fat", msg_id=msg_id), scheduler
        )
        task_id = patched_db.all_records("tasks")[-1]["id"]
        messages.reset()
        return task_id

    async def test_create_command(self, patched_db, messages, scheduler):
        await process_webhook_message(_payload("/create Buy milk, @222, 2030-01-01, Full fat"), scheduler)

        [record] = patched_db.all_records("tasks")
        assert record["description"] == "Buy milk"
        assert record["creator"] == "111"
        assert record["assignees"] == ["222"]
        assert record["notes"] == "Full fat"
        assert scheduler.has_pending(record["id"])
        assert messages.recipients() == ["111", "222"]

        [processed] = patched_db.all_records("processed_messages")
        assert processed["message_id"] == "msg_1"
        assert processed["success"] is True

    async def test_duplicate_delivery_is_processed_once(self, patched_db, messages, scheduler):
        payload = _payload("/create Buy milk, @222")

        await process_webhook_message(payload, scheduler)
        await process_webhook_message(payload, scheduler)

        assert len(patched_db.all_records("tasks")) == 1

    async def test_malformed_create_replies_with_format(self, patched_db, messages, scheduler):
        await process_webhook_message(_payload("/create Buy milk"), scheduler)

        assert patched_db.all_records("tasks") == []
        assert "Format: /create" in messages.texts_to("111")[0]
        assert patched_db.all_records("processed_messages")[0]["success"] is False

    async def test_button_completes_task(self, patched_db, messages, scheduler):
        task_id = await self._create(patched_db, messages, scheduler)

        await process_webhook_message(_button(task_id, sender="222"), scheduler)

        record = await patched_db.get_record("tasks", task_id)
        assert record["status"] == "COMPLETED"
        assert not scheduler.has_pending(task_id)
        assert "marked as completed" in messages.texts_to("222")[0]
        assert "Task completed!" in messages.texts_to("111")[0]

    async def test_button_from_outsider_is_refused(self, patched_db, messages, scheduler):
        task_id = await self._create(patched_db, messages, scheduler)

        await process_webhook_message(_button(task_id, sender="333"), scheduler)

        record = await patched_db.get_record("tasks", task_id)
        assert record["status"] == "OPEN"
        assert messages.recipients() == ["333"]
        assert "Only the task creator or its assignees" in messages.texts_to("333")[0]

    async def test_button_for_missing_task(self, patched_db, messages, scheduler):
        await process_webhook_message(_button("9999", sender="222"), scheduler)

        assert "I couldn't find that task." in messages.texts_to("222")[0]

    async def test_invalid_button_payload(self, patched_db, messages, scheduler):
        payload = _payload("?", sender="222", type="buttons_response", selectedButtonId="something_else")

        await process_webhook_message(payload, scheduler)

        assert messages.texts_to("222") == [ERROR_MSG_BUTTON_PROCESSING_FAILED]

    async def test_tasks_lists_active_tasks(self, patched_db, messages, scheduler):
        await self._create(patched_db, messages, scheduler)

        await process_webhook_message(_payload("/tasks", sender="222", msg_id="list_1"), scheduler)

        text = messages.texts_to("222")[0]
        assert "Your Active Tasks" in text
        assert "Buy milk" in text

    async def test_tasks_for_assignee(self, patched_db, messages, scheduler):
        await self._create(patched_db, messages, scheduler)

        await process_webhook_message(_payload("/tasks/222", sender="444", msg_id="list_1"), scheduler)

        text = messages.texts_to("444")[0]
        assert "Tasks assigned to 222" in text
        assert "Buy milk" in text

    async def test_update_by_creator(self, patched_db, messages, scheduler):
        task_id = await self._create(patched_db, messages, scheduler)

        await process_webhook_message(_payload(f"/update {task_id}, Buy oat milk", msg_id="upd_1"), scheduler)

        record = await patched_db.get_record("tasks", task_id)
        assert record["description"] == "Buy oat milk"
        assert "Task updated!" in messages.texts_to("111")[0]

    async def test_update_by_outsider_is_refused(self, patched_db, messages, scheduler):
        task_id = await self._create(patched_db, messages, scheduler)

        await process_webhook_message(
            _payload(f"/update {task_id}, Buy oat milk", sender="333", msg_id="upd_1"), scheduler
        )

        record = await patched_db.get_record("tasks", task_id)
        assert record["description"] == "Buy milk"
        assert "Only the task creator" in messages.texts_to("333")[0]

    async def test_help(self, patched_db, messages, scheduler):
        await process_webhook_message(_payload("/help"), scheduler)

        assert "Available commands" in messages.texts_to("111")[0]

    async def test_unknown_command(self, patched_db, messages, scheduler):
        await process_webhook_message(_payload("/dance"), scheduler)

        assert "Unknown command" in messages.texts_to("111")[0]
        [processed] = patched_db.all_records("processed_messages")
        assert processed["success"] is False
        assert processed["error_message"] == "Unknown command: /dance"

    async def test_plain_text_is_ignored(self, patched_db, messages, scheduler):
        await process_webhook_message(_payload("hello there"), scheduler)

        assert messages.recipients() == []
        assert patched_db.all_records("processed_messages") == []

    async def test_unexpected_error_replies_and_records_failure(self, patched_db, messages, scheduler, monkeypatch):
        monkeypatch.setattr(
            "src.interface.webhook.task_service.create_task", AsyncMock(side_effect=RuntimeError("boom"))
        )

        await process_webhook_message(_payload("/create Buy milk, @222"), scheduler)

        assert "There was an error processing your request." in messages.texts_to("111")[0]
        [processed] = patched_db.all_records("processed_messages")
        assert processed["success"] is False
        assert processed["error_message"] == "boom"

"""Tests for the task REST API."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from src.interface.dependencies import get_reminder_scheduler
from src.main import app


@pytest.fixture
def client(patched_db, messages, scheduler):
    """Test client with the reminder scheduler swapped for the unstarted test one."""
    app.dependency_overrides[get_reminder_scheduler] = lambda: scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def task_id(patched_db) -> str:
    record = asyncio.run(
        patched_db.create_record(
            "tasks",
            {
                "description": "Buy milk",
                "creator": "111",
                "assignees": ["222"],
                "due_date": datetime.now(UTC) + timedelta(days=2),
                "notes": None,
                "status": "OPEN",
                "created_at": datetime.now(UTC),
                "completed_at": None,
            },
        )
    )
    return record["id"]


@pytest.mark.unit
class TestGetTasksByPhone:
    def test_lists_created_and_assigned_tasks(self, client, task_id):
        for phone in ("111", "222", "+222"):
            response = client.get(f"/api/tasks/user/{phone}")

            assert response.status_code == 200
            body = response.json()
            assert body["success"] is True
            assert [task["id"] for task in body["data"]] == [task_id]

    def test_unrelated_user_gets_empty_list(self, client, task_id):
        response = client.get("/api/tasks/user/333")

        assert response.json() == {"success": True, "data": []}


@pytest.mark.unit
class TestUpdateTask:
    def test_edit_description(self, client, task_id):
        response = client.put(f"/api/tasks/{task_id}", json={"description": "Buy oat milk"})

        assert response.status_code == 200
        assert response.json()["data"]["description"] == "Buy oat milk"

    def test_status_field_is_rejected(self, client, task_id):
        response = client.put(f"/api/tasks/{task_id}", json={"status": "COMPLETED"})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Please use specific endpoints for status (/complete, /reopen) or notes (/notes) updates.",
        }

    def test_empty_description_is_rejected(self, client, task_id):
        response = client.put(f"/api/tasks/{task_id}", json={"description": "  "})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_missing_task(self, client):
        response = client.put("/api/tasks/9999", json={"description": "x"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Task not found: 9999"}


@pytest.mark.unit
class TestStatusEndpoints:
    def test_complete_requires_phone(self, client, task_id):
        response = client.patch(f"/api/tasks/{task_id}/complete")

        assert response.status_code == 400
        assert response.json()["error"] == "Phone number is required"

    def test_complete_by_outsider_is_forbidden(self, client, task_id):
        response = client.patch(f"/api/tasks/{task_id}/complete", params={"phone": "333"})

        assert response.status_code == 403
        assert response.json()["success"] is False

    def test_complete_then_reopen(self, client, task_id, scheduler):
        response = client.patch(f"/api/tasks/{task_id}/complete", params={"phone": "222"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "COMPLETED"
        assert data["completed_at"] is not None

        response = client.patch(f"/api/tasks/{task_id}/reopen", params={"phone": "111"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "OPEN"
        assert data["completed_at"] is None
        assert scheduler.has_pending(task_id)


@pytest.mark.unit
class TestNotesEndpoint:
    def test_update_notes(self, client, task_id, messages):
        response = client.patch(f"/api/tasks/{task_id}/notes", params={"phone": "222"}, json={"notes": "Two"})

        assert response.status_code == 200
        assert response.json()["data"]["notes"] == "Two"
        assert messages.recipients() == ["111"]

    def test_notes_field_required(self, client, task_id):
        response = client.patch(f"/api/tasks/{task_id}/notes", params={"phone": "222"}, json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Notes field is required"


@pytest.mark.unit
class TestDeleteEndpoint:
    def test_delete(self, client, task_id, messages):
        response = client.delete(f"/api/tasks/{task_id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"message": "Task deleted successfully"}}
        assert client.get("/api/tasks/user/111").json()["data"] == []
        assert "Deleted by: admin" in messages.texts_to("222")[0]

    def test_delete_missing_task(self, client):
        response = client.delete("/api/tasks/9999")

        assert response.status_code == 404

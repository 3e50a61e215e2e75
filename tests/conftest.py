"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime, timedelta

import pytest


@pytest.fixture
def sample_task_data() -> dict:
    """Returns create-task input due in two days.

    Identities are already in normalized digits-only form: 111 creates, 222 is
    assigned.
    """
    return {
        "description": "Buy milk",
        "creator": "111",
        "assignees": ["222"],
        "due_date": datetime.now(UTC) + timedelta(days=2),
        "notes": "Full fat",
    }

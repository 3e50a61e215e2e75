"""Unit tests for error classification utilities."""

import pytest

from src.core.errors import (
    DeliveryFailure,
    ErrorCode,
    ErrorSeverity,
    ForbiddenError,
    TaskNotFoundError,
    TaskValidationError,
    classify_error_with_response,
)


@pytest.mark.unit
class TestTaskErrors:
    """Tests for the task error types."""

    def test_not_found_message_is_unquoted(self):
        error = TaskNotFoundError("42")

        assert str(error) == "Task not found: 42"
        assert error.task_id == "42"
        assert isinstance(error, KeyError)

    def test_forbidden_carries_actor(self):
        error = ForbiddenError("42", "333")

        assert error.actor == "333"
        assert "333" in str(error)
        assert isinstance(error, PermissionError)

    def test_validation_error_is_value_error(self):
        assert isinstance(TaskValidationError("bad"), ValueError)

    def test_delivery_failure_reason(self):
        failure = DeliveryFailure("222", None)

        assert failure.reason is None
        assert "unknown error" in str(failure)


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    """Tests for classify_error_with_response function."""

    def test_task_not_found(self):
        response = classify_error_with_response(TaskNotFoundError("42"))

        assert response.code == ErrorCode.ERR_TASK_NOT_FOUND
        assert response.severity == ErrorSeverity.LOW
        assert "/tasks" in response.suggestion

    def test_forbidden(self):
        response = classify_error_with_response(ForbiddenError("42", "333"))

        assert response.code == ErrorCode.ERR_PERMISSION_DENIED
        assert "creator" in response.message

    def test_validation_error_keeps_message(self):
        response = classify_error_with_response(TaskValidationError("description: Task description cannot be empty"))

        assert response.code == ErrorCode.ERR_VALIDATION
        assert response.message == "description: Task description cannot be empty"
        assert "/create" in response.suggestion

    def test_network_error(self):
        response = classify_error_with_response(ConnectionError("Connection refused"))

        assert response.code == ErrorCode.ERR_NETWORK_ERROR
        assert "network" in response.message.lower()

    def test_timeout_phrase(self):
        response = classify_error_with_response(Exception("Request timeout after 30s"))

        assert response.code == ErrorCode.ERR_NETWORK_ERROR

    def test_unknown_error(self):
        response = classify_error_with_response(Exception("Something weird happened"))

        assert response.code == ErrorCode.ERR_UNKNOWN
        assert response.severity == ErrorSeverity.MEDIUM
        assert "/help" in response.suggestion

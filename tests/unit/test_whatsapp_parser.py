"""Tests for WAHA webhook parser."""

from src.interface.whatsapp_parser import parse_waha_webhook


def test_parse_simple_text_message():
    """Test parsing a standard text message."""
    data = {
        "event": "message",
        "payload": {
            "id": "true_1234567890@c.us_ABC",
            "from": "1234567890@c.us",
            "body": "/tasks",
            "timestamp": 1678900000,
            "type": "chat",
        },
    }
    result = parse_waha_webhook(data)
    assert result is not None
    assert result.message_id == "true_1234567890@c.us_ABC"
    assert result.from_phone == "1234567890"
    assert result.text == "/tasks"
    assert result.timestamp == "1678900000"
    assert result.message_type == "text"
    assert result.button_payload is None
    assert result.from_me is False


def test_parse_direct_payload():
    """Test parsing a payload that is not wrapped in event."""
    data = {
        "id": "msg_1",
        "from": "1234567890@c.us",
        "body": "Hello",
        "timestamp": 1678900000,
    }
    result = parse_waha_webhook(data)
    assert result is not None
    assert result.from_phone == "1234567890"


def test_parse_ignores_other_events():
    data = {"event": "session.status", "payload": {"id": "x", "from": "1234567890@c.us"}}
    assert parse_waha_webhook(data) is None


def test_parse_ignore_status_broadcast():
    """Test ignoring status@broadcast messages."""
    data = {"payload": {"id": "...", "from": "status@broadcast", "body": "status", "timestamp": 123}}
    assert parse_waha_webhook(data) is None


def test_parse_ignores_lid_senders():
    data = {"payload": {"id": "msg_1", "from": "123456789012345@lid", "body": "hi"}}
    assert parse_waha_webhook(data) is None


def test_parse_missing_fields():
    assert parse_waha_webhook({"payload": {"from": "1234567890@c.us"}}) is None
    assert parse_waha_webhook({"payload": {"id": "msg_1"}}) is None


def test_parse_from_me():
    data = {"event": "message.any", "payload": {"id": "msg_1", "from": "1234567890@c.us", "fromMe": True}}
    result = parse_waha_webhook(data)
    assert result is not None
    assert result.from_me is True


def test_parse_group_message_uses_participant():
    data = {
        "payload": {
            "id": "msg_1",
            "from": "120363000000000000@g.us",
            "participant": "919876543210@c.us",
            "body": "/tasks",
        }
    }
    result = parse_waha_webhook(data)
    assert result is not None
    assert result.is_group_message is True
    assert result.group_id == "120363000000000000@g.us"
    assert result.from_phone == "919876543210"


def test_parse_button_response_selected_id_root():
    """Test parsing button response where selectedButtonId is in payload root."""
    data = {
        "payload": {
            "id": "msg_id",
            "from": "123@c.us",
            "body": "Mark as Done",
            "timestamp": 123,
            "type": "buttons_response",
            "selectedButtonId": "complete_42",
        }
    }
    result = parse_waha_webhook(data)
    assert result is not None
    assert result.message_type == "button_reply"
    assert result.button_payload == "complete_42"


def test_parse_button_response_selected_id_data():
    """Test parsing button response where selectedButtonId is in _data (Standard WebJS)."""
    data = {
        "payload": {
            "id": "msg_id",
            "from": "123@c.us",
            "type": "buttons_response",
            "_data": {"selectedButtonId": "complete_42"},
        }
    }
    result = parse_waha_webhook(data)
    assert result is not None
    assert result.button_payload == "complete_42"


def test_parse_list_response():
    data = {
        "payload": {
            "id": "msg_id",
            "from": "123@c.us",
            "type": "list_response",
            "selectedRowId": "complete_7",
        }
    }
    result = parse_waha_webhook(data)
    assert result is not None
    assert result.button_payload == "complete_7"

"""
Tests for Validation Utilities
"""

import json

import pytest

from roomsync import ValidationError
from roomsync.utils import (
    parse_chat_event,
    parse_json_object,
    parse_todo_update,
    validate_message_content,
)
from roomsync.utils.validation import MAX_MESSAGE_LENGTH


def test_validate_message_content():
    """Test content length and type checks."""
    assert validate_message_content("hello") == (True, None)
    assert validate_message_content("") == (True, None)

    is_valid, error = validate_message_content("x" * (MAX_MESSAGE_LENGTH + 1))
    assert is_valid is False
    assert "too long" in error

    is_valid, error = validate_message_content(None)
    assert is_valid is False


def test_parse_json_object():
    """Test decoding request bodies."""
    assert parse_json_object('{"a": 1}') == {"a": 1}
    assert parse_json_object(b'{"a": 1}') == {"a": 1}

    for raw in (None, "", "null", "[]", "{bad", b"\xff\xfe"):
        with pytest.raises(ValidationError):
            parse_json_object(raw)


def test_parse_chat_event():
    """Test parsing a well-formed add event."""
    raw = json.dumps(
        {
            "type": "update",
            "id": "m1",
            "user": "bot",
            "role": "assistant",
            "content": "hi",
            "extra": "ignored",
        }
    )

    event_type, message = parse_chat_event(raw)

    assert event_type == "update"
    assert message.to_dict() == {
        "id": "m1",
        "user": "bot",
        "role": "assistant",
        "content": "hi",
    }


def test_parse_chat_event_rejects_long_content():
    """Test the content length limit on chat events."""
    raw = json.dumps(
        {
            "type": "add",
            "id": "m1",
            "user": "a",
            "role": "user",
            "content": "x" * (MAX_MESSAGE_LENGTH + 1),
        }
    )

    with pytest.raises(ValidationError, match="too long"):
        parse_chat_event(raw)


def test_parse_todo_update():
    """Test extracting todo changes."""
    assert parse_todo_update({}) == {}
    assert parse_todo_update({"completed": False, "other": 1}) == {
        "completed": False
    }
    assert parse_todo_update({"content": "x"}) == {"content": "x"}

    with pytest.raises(ValidationError):
        parse_todo_update({"completed": 1})
    with pytest.raises(ValidationError):
        parse_todo_update({"content": ["x"]})

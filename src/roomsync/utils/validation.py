"""
Validation Utilities

Checks the shape of inbound chat events and request bodies before any
state is touched. Every parse_* function raises ValidationError on a bad
shape and returns plain, typed values otherwise.
"""

import json
from typing import Any, Dict, Optional, Tuple, Union

from ..errors import ValidationError
from ..records import (
    CHAT_ROLES,
    PRI_MAX_SCORE,
    PRI_MIN_SCORE,
    PRI_QUESTION_IDS,
    ChatMessage,
)

# Message validation constants
MAX_MESSAGE_LENGTH = 5000
MAX_TEXT_LENGTH = 5000
CHAT_EVENT_TYPES = ("add", "update")


def validate_message_content(content: str) -> Tuple[bool, Optional[str]]:
    """
    Validate chat message content.

    Empty content is allowed, since a streaming assistant message starts
    out empty and is filled in by later updates.

    Args:
        content: The message content to validate

    Returns:
        tuple: (is_valid, error_message)
            - is_valid: True if content is valid, False otherwise
            - error_message: Error message if invalid, None if valid
    """
    if not isinstance(content, str):
        return False, "Message content must be a string"

    if len(content) > MAX_MESSAGE_LENGTH:
        return (
            False,
            f"Message content too long (max {MAX_MESSAGE_LENGTH} characters)",
        )

    return True, None


def parse_json_object(raw: Union[str, bytes, None]) -> Dict[str, Any]:
    """
    Decode a JSON body that must be an object.

    Args:
        raw: Text or UTF-8 bytes

    Returns:
        dict: The decoded object

    Raises:
        ValidationError: If raw is not a JSON object
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise ValidationError("Body must be UTF-8 encoded") from None
    if not raw:
        raise ValidationError("Body must be a JSON object")

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON format") from None

    if not isinstance(data, dict):
        raise ValidationError("Body must be a JSON object")
    return data


def parse_chat_event(raw: Union[str, bytes]) -> Tuple[str, ChatMessage]:
    """
    Parse an inbound chat event.

    Expected format:
    {"type": "add" | "update", "id": "...", "user": "...",
     "role": "user" | "assistant", "content": "..."}

    Args:
        raw: The raw frame received from a connection

    Returns:
        tuple: (event_type, message)

    Raises:
        ValidationError: If the event is malformed
    """
    data = parse_json_object(raw)

    event_type = data.get("type")
    if event_type not in CHAT_EVENT_TYPES:
        raise ValidationError(f"Unknown event type: {event_type}")

    for name in ("id", "user", "role"):
        value = data.get(name)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"{name} must be a non-empty string")

    if data["role"] not in CHAT_ROLES:
        raise ValidationError(f"Unknown role: {data['role']}")

    is_valid, error = validate_message_content(data.get("content"))
    if not is_valid:
        raise ValidationError(error)

    return event_type, ChatMessage(
        id=data["id"],
        user=data["user"],
        role=data["role"],
        content=data["content"],
    )


def require_text(data: Dict[str, Any], name: str) -> str:
    """
    Get a required string field from a request body.

    Raises:
        ValidationError: If the field is missing, not a string or too long
    """
    value = data.get(name)
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    if len(value) > MAX_TEXT_LENGTH:
        raise ValidationError(
            f"{name} too long (max {MAX_TEXT_LENGTH} characters)"
        )
    return value


def parse_todo_update(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract the fields a todo update may change.

    Args:
        data: Decoded request body

    Returns:
        dict: The present fields among "content" and "completed"

    Raises:
        ValidationError: If a present field has the wrong type
    """
    changes = {}
    if "content" in data:
        changes["content"] = require_text(data, "content")
    if "completed" in data:
        if not isinstance(data["completed"], bool):
            raise ValidationError("completed must be a boolean")
        changes["completed"] = data["completed"]
    return changes


def parse_pri_answer(data: Dict[str, Any]) -> Tuple[str, int]:
    """
    Validate a readiness answer body.

    Args:
        data: Decoded request body with "questionId" and "score"

    Returns:
        tuple: (question_id, score)

    Raises:
        ValidationError: If the question is unknown or the score is out of range
    """
    question_id = data.get("questionId")
    if not isinstance(question_id, str) or question_id not in PRI_QUESTION_IDS:
        raise ValidationError(f"Unknown questionId: {question_id}")

    score = data.get("score")
    # bool is an int subclass
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationError("score must be an integer")
    if not PRI_MIN_SCORE <= score <= PRI_MAX_SCORE:
        raise ValidationError(
            f"score must be between {PRI_MIN_SCORE} and {PRI_MAX_SCORE}"
        )
    return question_id, score

"""
Utilities for the Room Engine

This module contains helpers for validating chat events and request
bodies.
"""

from .validation import (
    parse_chat_event,
    parse_json_object,
    parse_pri_answer,
    parse_todo_update,
    require_text,
    validate_message_content,
)

__all__ = [
    "parse_chat_event",
    "parse_json_object",
    "parse_pri_answer",
    "parse_todo_update",
    "require_text",
    "validate_message_content",
]

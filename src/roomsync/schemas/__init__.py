"""
Schemas for the Room Engine

This module contains builders for the messages chat rooms send and the
responses partnership rooms return.
"""

from .messages import (
    create_all_messages_snapshot,
    create_chat_error,
)
from .responses import (
    RoomResponse,
    create_error_response,
    create_response_for_error,
    create_success_response,
)

__all__ = [
    "create_all_messages_snapshot",
    "create_chat_error",
    "RoomResponse",
    "create_error_response",
    "create_response_for_error",
    "create_success_response",
]

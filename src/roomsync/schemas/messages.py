"""
Chat Message Schema Definitions

Contains functions for creating the messages a chat room sends to its
connections.
"""

from typing import Any, Dict, Iterable

from ..records import ChatMessage


def create_all_messages_snapshot(
    messages: Iterable[ChatMessage],
) -> Dict[str, Any]:
    """
    Create the full-history message sent to a new connection.

    Args:
        messages: The room's chat messages in order

    Returns:
        dict: {"type": "all", "messages": [...]}
    """
    return {
        "type": "all",
        "messages": [message.to_dict() for message in messages],
    }


def create_chat_error(message_id: str, error: str) -> Dict[str, Any]:
    """
    Create an error sent back to the connection whose event failed.

    Args:
        message_id: Id of the message that could not be stored
        error: Error description

    Returns:
        dict: Error event
    """
    return {
        "type": "error",
        "id": message_id,
        "error": error,
    }

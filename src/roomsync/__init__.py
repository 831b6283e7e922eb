"""
Room Sync Package

Per-room, durable, real-time shared state for chat rooms and partnership
rooms: record stores backed by per-room tables, subscriber fan-out, and
the WebSocket and HTTP servers that host them.
"""

from .chat import ChatRoom, ConnectionState
from .errors import (
    NotFoundError,
    PersistenceError,
    RoomSyncError,
    TransportError,
    ValidationError,
)
from .partnership import PartnershipRoom, readiness_score
from .records import (
    ChatMessage,
    PartnerContent,
    PartnerNote,
    PRIAnswer,
    Prompt,
    TodoItem,
)
from .rooms import RoomManager
from .storage import TableStore, create_room_engine
from .store import RoomStateStore
from .subscribers import SubscriberRegistry

__all__ = [
    "ChatRoom",
    "ConnectionState",
    "NotFoundError",
    "PersistenceError",
    "RoomSyncError",
    "TransportError",
    "ValidationError",
    "PartnershipRoom",
    "readiness_score",
    "ChatMessage",
    "PartnerContent",
    "PartnerNote",
    "PRIAnswer",
    "Prompt",
    "TodoItem",
    "RoomManager",
    "TableStore",
    "create_room_engine",
    "RoomStateStore",
    "SubscriberRegistry",
]

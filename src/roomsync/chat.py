"""
Chat Room

A room holding an ordered chat history. New connections receive the
whole history; every add/update event from a connection is echoed to the
other connections and reconciled into the room's store.
"""

import json
import logging
from enum import Enum
from typing import Dict, List, Optional, Union

from .errors import PersistenceError, ValidationError
from .records import COLLECTIONS, MESSAGES, ChatMessage
from .schemas import create_all_messages_snapshot, create_chat_error
from .storage import TableStore
from .store import RoomStateStore
from .subscribers import SubscriberRegistry
from .utils import parse_chat_event

logger = logging.getLogger(__name__)

# Seconds a connection may take to accept one frame
SEND_TIMEOUT = 10.0


class ConnectionState(Enum):
    """Lifecycle of one connection to a chat room."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ChatRoom:
    """
    Chat room state and event handling.

    The host transport drives the room through on_start, on_connect,
    on_message and on_disconnect.
    """

    def __init__(self, room_id: str, tables: TableStore):
        """
        Initialize the chat room.

        Args:
            room_id: Room identifier
            tables: Durable tables for this room
        """
        self.room_id = room_id
        self.store = RoomStateStore(
            tables, [COLLECTIONS[MESSAGES]], room_id=room_id
        )
        self.subscribers = SubscriberRegistry(room_id, send_timeout=SEND_TIMEOUT)
        self._connections: Dict[str, ConnectionState] = {}

    async def on_start(self):
        """Create the messages table if needed and load the history."""
        messages = await self.store.load(MESSAGES)
        logger.info(
            f"Chat room {self.room_id} started with {len(messages)} messages"
        )

    def messages(self) -> List[ChatMessage]:
        return self.store.list(MESSAGES)

    def connection_state(self, connection_id: str) -> ConnectionState:
        """Get a connection's state; unknown and departed ids are DISCONNECTED."""
        return self._connections.get(
            connection_id, ConnectionState.DISCONNECTED
        )

    async def on_connect(self, connection_id: str, connection):
        """
        Register a connection and send it the full history.

        The snapshot is taken and sent before any further broadcast
        reaches the connection. Every message is therefore either in the
        snapshot or delivered to the connection afterwards.

        Args:
            connection_id: Identifier of the new connection
            connection: Object with an async send(payload) method
        """
        self._connections[connection_id] = ConnectionState.CONNECTING
        delivered = await self.subscribers.subscribe_and_send(
            connection_id,
            connection,
            lambda: json.dumps(create_all_messages_snapshot(self.messages())),
        )
        if not delivered:
            logger.info(
                f"Connection {connection_id} left room {self.room_id} "
                f"before the snapshot was delivered"
            )
            self.on_disconnect(connection_id)
            return

        self._connections[connection_id] = ConnectionState.CONNECTED
        logger.info(
            f"Connection {connection_id} joined chat room {self.room_id} "
            f"({self.subscribers.count()} connected)"
        )

    async def on_message(
        self, connection_id: str, raw: Union[str, bytes]
    ) -> Optional[ChatMessage]:
        """
        Handle an event received from a connection.

        The raw frame goes to every other connection once the message is
        in the room's history and before it is persisted. Malformed
        events are dropped.

        Args:
            connection_id: Identifier of the sending connection
            raw: The frame as received

        Returns:
            The stored message, or None if the event was dropped or could
            not be stored
        """
        if self._connections.get(connection_id) != ConnectionState.CONNECTED:
            logger.warning(
                f"Ignoring event from {connection_id}: not connected to "
                f"room {self.room_id}"
            )
            return None

        try:
            event_type, message = parse_chat_event(raw)
        except ValidationError as e:
            logger.warning(
                f"Dropping malformed event from {connection_id} "
                f"in room {self.room_id}: {e}"
            )
            return None

        async def echo(_applied):
            await self.subscribers.broadcast(raw, exclude_ids=[connection_id])

        try:
            stored = await self.store.upsert(MESSAGES, message, on_applied=echo)
        except PersistenceError as e:
            logger.error(
                f"Failed to store {event_type} {message.id} "
                f"in room {self.room_id}: {e}"
            )
            await self.subscribers.send_to_one(
                connection_id,
                json.dumps(create_chat_error(message.id, "message not saved")),
            )
            return None

        logger.debug(f"Stored {event_type} {message.id} in room {self.room_id}")
        return stored

    def on_disconnect(self, connection_id: str):
        """Mark a connection as gone and stop sending to it."""
        if connection_id not in self._connections:
            return
        self.subscribers.unsubscribe(connection_id)
        del self._connections[connection_id]
        logger.info(
            f"Connection {connection_id} left chat room {self.room_id} "
            f"({self.subscribers.count()} connected)"
        )

    def close(self):
        self.store.close()

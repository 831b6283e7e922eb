"""
WebSocket Server for Chat Rooms

Accepts WebSocket connections on /parties/chat/{room_id} and drives the
matching chat room through its connect, message and disconnect hooks.
"""

import logging
import uuid
from typing import Optional
from urllib.parse import urlsplit

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .errors import RoomSyncError
from .rooms import CHAT, RoomManager

logger = logging.getLogger(__name__)

CHAT_PATH_PREFIX = ("parties", CHAT)
POLICY_VIOLATION = 1008
INTERNAL_ERROR = 1011


def parse_chat_path(path: str) -> Optional[str]:
    """
    Extract the room id from a chat connection path.

    Args:
        path: Request path, possibly with a query string

    Returns:
        The room id, or None if the path is not a chat room path
    """
    segments = [s for s in urlsplit(path).path.split("/") if s]
    if len(segments) != 3 or tuple(segments[:2]) != CHAT_PATH_PREFIX:
        return None
    return segments[2]


class WebSocketServer:
    """
    WebSocket server for chat room connections.

    Every connection belongs to exactly one room, named in its path.
    """

    def __init__(self, room_manager: RoomManager, host: str, port: int):
        """
        Initialize the WebSocket server.

        Args:
            room_manager: The room manager instance
            host: Host address to bind to
            port: Port to listen on
        """
        self.room_manager = room_manager
        self.host = host
        self.port = port
        self.server = None

    async def start(self):
        """Start the WebSocket server."""
        self.server = await serve(self.handle_client, self.host, self.port)
        logger.info(f"WebSocket server started on ws://{self.host}:{self.port}")

    async def stop(self):
        """Stop the WebSocket server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("WebSocket server stopped")

    async def handle_client(self, connection: ServerConnection):
        """
        Handle a client connection.

        Args:
            connection: The WebSocket connection
        """
        room_id = parse_chat_path(connection.request.path)
        if room_id is None:
            logger.warning(f"Rejecting connection to {connection.request.path}")
            await connection.close(POLICY_VIOLATION, "Unknown room")
            return

        try:
            room = await self.room_manager.get_chat_room(room_id)
        except RoomSyncError as e:
            logger.error(f"Cannot open chat room {room_id}: {e}")
            code = POLICY_VIOLATION if e.status < 500 else INTERNAL_ERROR
            await connection.close(code, "Room unavailable")
            return

        connection_id = uuid.uuid4().hex
        logger.info(f"Client {connection_id} connected to chat room {room_id}")
        try:
            await room.on_connect(connection_id, connection)
            async for message in connection:
                await room.on_message(connection_id, message)
        except ConnectionClosed:
            logger.info(f"Client {connection_id} disconnected")
        finally:
            room.on_disconnect(connection_id)

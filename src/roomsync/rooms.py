"""
Room Management

Creates rooms on first use, one instance per room type and identifier,
and keeps them alive for the life of the process.
"""

import asyncio
import logging
import os
import re
from typing import Dict, Optional, Tuple, Union

from .chat import ChatRoom
from .errors import NotFoundError
from .partnership import PartnershipRoom
from .storage import DEFAULT_DB_TIMEOUT, TableStore, create_room_engine

logger = logging.getLogger(__name__)

CHAT = "chat"
PARTNERSHIP = "tandem"

ROOM_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")

_ROOM_TYPES = {
    CHAT: ChatRoom,
    PARTNERSHIP: PartnershipRoom,
}

Room = Union[ChatRoom, PartnershipRoom]


class RoomManager:
    """
    Registry of the rooms hosted by this process.

    Rooms never share state. Each gets its own database, either a file
    under data_dir or a private in-memory database.
    """

    def __init__(
        self,
        data_dir: Optional[str] = None,
        db_timeout: float = DEFAULT_DB_TIMEOUT,
    ):
        """
        Initialize the room manager.

        Args:
            data_dir: Directory for room databases, None for in-memory rooms
            db_timeout: Seconds a write waits on a locked database
        """
        self.data_dir = data_dir
        self.db_timeout = db_timeout
        self._rooms: Dict[Tuple[str, str], Room] = {}
        self._start_locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        logger.info(
            f"RoomManager initialized with data dir: {data_dir or 'memory'}"
        )

    async def get_chat_room(self, room_id: str) -> ChatRoom:
        return await self.get_room(CHAT, room_id)

    async def get_partnership_room(self, room_id: str) -> PartnershipRoom:
        return await self.get_room(PARTNERSHIP, room_id)

    async def get_room(self, room_type: str, room_id: str) -> Room:
        """
        Get a room, creating and starting it on first use.

        Args:
            room_type: CHAT or PARTNERSHIP
            room_id: Room identifier

        Returns:
            The started room

        Raises:
            NotFoundError: If the room type or identifier is invalid
            PersistenceError: If the room's tables cannot be loaded
        """
        if room_type not in _ROOM_TYPES:
            raise NotFoundError(f"Unknown room type: {room_type}")
        if not isinstance(room_id, str) or not ROOM_ID_PATTERN.fullmatch(
            room_id
        ):
            raise NotFoundError(f"Invalid room id: {room_id!r}")

        key = (room_type, room_id)
        room = self._rooms.get(key)
        if room is not None:
            return room

        # One start per room; other rooms start independently
        async with self._start_locks.setdefault(key, asyncio.Lock()):
            room = self._rooms.get(key)
            if room is not None:
                return room

            room = _ROOM_TYPES[room_type](room_id, self._open_tables(key))
            try:
                await room.on_start()
            except Exception:
                room.close()
                raise
            self._rooms[key] = room
            logger.info(f"Started {room_type} room {room_id}")
            return room

    def _open_tables(self, key: Tuple[str, str]) -> TableStore:
        path = None
        if self.data_dir:
            room_type, room_id = key
            path = os.path.join(self.data_dir, room_type, f"{room_id}.sqlite3")
        return TableStore(create_room_engine(path, timeout=self.db_timeout))

    def get_room_count(self) -> int:
        return len(self._rooms)

    def close(self):
        """Close every room."""
        for (room_type, room_id), room in list(self._rooms.items()):
            room.close()
            logger.info(f"Closed {room_type} room {room_id}")
        self._rooms.clear()

    async def shutdown(self):
        """
        Close every room without blocking the event loop.

        Closing a room waits for its pending table writes, which can take
        up to the database timeout.
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.close)

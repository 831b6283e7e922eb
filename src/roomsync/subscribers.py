"""
Subscriber Registry

Tracks the live connections of one room and delivers payloads to them.
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, List, Optional, Union

from websockets.exceptions import ConnectionClosed

from .errors import TransportError

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]

# Exceptions that mean the peer went away
_DISCONNECTED = (
    ConnectionClosed,
    ConnectionError,
    TransportError,
)


class SubscriberRegistry:
    """
    The set of connections currently receiving a room's broadcasts.

    Connections are any object with an async ``send`` method, normally a
    websockets server connection. Deliveries are serialized through one
    lock, so successive sends reach each subscriber in call order.
    Subscribers that turn out to be disconnected are dropped silently.

    Since delivery is sequential, a subscriber that stops reading holds
    up every send in the room. With a send_timeout, a send that takes
    longer is treated as a disconnect and the subscriber is dropped.
    """

    def __init__(self, room_id: str = "", send_timeout: Optional[float] = None):
        """
        Initialize the registry.

        Args:
            room_id: Room identifier, used for logging
            send_timeout: Seconds a single send may take, or None for no limit
        """
        self.room_id = room_id
        self.send_timeout = send_timeout
        self._subscribers: Dict[str, object] = {}
        self._send_lock = asyncio.Lock()

    def subscribe(self, connection_id: str, connection):
        """
        Add a connection to the room's live set.

        Args:
            connection_id: Identifier of the connection
            connection: Object with an async send(payload) method
        """
        self._subscribers[connection_id] = connection
        logger.debug(
            f"Subscribed {connection_id} to room {self.room_id} "
            f"({len(self._subscribers)} live)"
        )

    def unsubscribe(self, connection_id: str) -> bool:
        """
        Remove a connection from the room's live set.

        Args:
            connection_id: Identifier of the connection

        Returns:
            True if the connection was subscribed, False otherwise
        """
        removed = self._subscribers.pop(connection_id, None) is not None
        if removed:
            logger.debug(
                f"Unsubscribed {connection_id} from room {self.room_id} "
                f"({len(self._subscribers)} live)"
            )
        return removed

    def is_subscribed(self, connection_id: str) -> bool:
        return connection_id in self._subscribers

    def connection_ids(self) -> List[str]:
        return list(self._subscribers)

    def count(self) -> int:
        return len(self._subscribers)

    async def send_to_one(self, connection_id: str, payload: Payload) -> bool:
        """
        Deliver a payload to a single subscriber.

        Args:
            connection_id: Identifier of the target connection
            payload: Text or bytes to send

        Returns:
            True if delivered, False if the subscriber is gone
        """
        async with self._send_lock:
            connection = self._subscribers.get(connection_id)
            if connection is None:
                return False
            return await self._deliver(connection_id, connection, payload)

    async def subscribe_and_send(
        self,
        connection_id: str,
        connection,
        make_payload: Callable[[], Payload],
    ) -> bool:
        """
        Add a connection and send it a first payload before anything else.

        The payload is built while the send lock is held, so no broadcast
        can slip in between building it and delivering it, and every
        broadcast that has not started yet includes the new connection.

        Args:
            connection_id: Identifier of the connection
            connection: Object with an async send(payload) method
            make_payload: Builds the payload to send first

        Returns:
            True if delivered, False if the connection is already gone
        """
        async with self._send_lock:
            self.subscribe(connection_id, connection)
            payload = make_payload()
            return await self._deliver(connection_id, connection, payload)

    async def broadcast(
        self, payload: Payload, exclude_ids: Optional[Iterable[str]] = None
    ) -> int:
        """
        Deliver a payload to every subscriber except the excluded ones.

        Connections may join or leave while this runs; a snapshot of the
        live set is taken first and departed subscribers are skipped.

        Args:
            payload: Text or bytes to send
            exclude_ids: Optional connection ids to skip

        Returns:
            Number of subscribers the payload was delivered to
        """
        excluded = set(exclude_ids or ())
        delivered = 0
        async with self._send_lock:
            for connection_id, connection in list(self._subscribers.items()):
                if connection_id in excluded:
                    continue
                if connection_id not in self._subscribers:
                    continue
                if await self._deliver(connection_id, connection, payload):
                    delivered += 1
        return delivered

    async def _deliver(self, connection_id: str, connection, payload) -> bool:
        try:
            if self.send_timeout is None:
                await connection.send(payload)
            else:
                await asyncio.wait_for(
                    connection.send(payload), self.send_timeout
                )
            return True
        except asyncio.TimeoutError:
            logger.warning(
                f"Dropping {connection_id} in room {self.room_id}: "
                f"send took longer than {self.send_timeout}s"
            )
            self._subscribers.pop(connection_id, None)
            return False
        except _DISCONNECTED:
            logger.debug(
                f"Dropping send to disconnected {connection_id} "
                f"in room {self.room_id}"
            )
            self._subscribers.pop(connection_id, None)
            return False

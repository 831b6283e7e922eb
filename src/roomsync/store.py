"""
Room State Store

Holds the in-memory mirror of a room's record collections and keeps it
consistent with the room's durable tables.

Every collection is an ordered list. Writes reconcile by record id: a
record whose id is already present replaces the old one at the same
position, anything else is appended. The in-memory change is applied
first and persisted second; if persisting fails the change is undone
before the error propagates, so the cache never claims a write the table
does not hold.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from .errors import PersistenceError
from .records import Collection, Record
from .storage import TableStore

logger = logging.getLogger(__name__)


class RoomStateStore:
    """
    Per-room record cache backed by durable tables.

    All table I/O runs on a single worker thread owned by the store, which
    serializes one room's writes in submission order without blocking
    other rooms. Each collection additionally has its own asyncio lock
    covering the whole apply-then-persist sequence.
    """

    def __init__(
        self,
        tables: TableStore,
        collections: Iterable[Collection],
        room_id: str = "",
    ):
        """
        Initialize the store.

        Args:
            tables: Durable tables for the room
            collections: Record kinds this room holds
            room_id: Room identifier, used for logging
        """
        self.tables = tables
        self.room_id = room_id
        self._collections: Dict[str, Collection] = {
            c.kind: c for c in collections
        }
        self._records: Dict[str, List[Record]] = {
            kind: [] for kind in self._collections
        }
        self._locks: Dict[str, asyncio.Lock] = {
            kind: asyncio.Lock() for kind in self._collections
        }
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"room-{room_id}"
        )

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def _collection(self, kind: str) -> Collection:
        try:
            return self._collections[kind]
        except KeyError:
            raise KeyError(f"Unknown record kind: {kind}") from None

    async def load(self, kind: str) -> List[Record]:
        """
        Ensure the table for kind exists and read it into memory.

        Safe to call repeatedly; each call replaces the cache with a fresh
        read.

        Args:
            kind: Record kind

        Returns:
            The loaded records

        Raises:
            PersistenceError: If the table cannot be created or read
        """
        collection = self._collection(kind)
        async with self._locks[kind]:
            await self._run(self.tables.ensure_table, collection.schema)
            rows = await self._run(self.tables.select_all, collection.schema.name)
            self._records[kind] = [
                collection.record_type.from_row(row) for row in rows
            ]
            logger.debug(
                f"Loaded {len(rows)} {kind} for room {self.room_id}"
            )
            return list(self._records[kind])

    async def seed(self, kind: str, defaults: Iterable[Record]) -> List[Record]:
        """
        Write default records if the collection is empty.

        Call after load(). When the table already holds rows, those rows
        win and defaults are discarded. Defaults are written in a single
        transaction.

        Args:
            kind: Record kind
            defaults: Records to write into an empty collection

        Returns:
            The collection after seeding

        Raises:
            PersistenceError: If the defaults cannot be written
        """
        collection = self._collection(kind)
        defaults = list(defaults)
        async with self._locks[kind]:
            if self._records[kind]:
                return list(self._records[kind])

            self._records[kind] = list(defaults)
            try:
                await self._run(
                    self.tables.insert_or_update_many,
                    collection.schema.name,
                    collection.schema.key,
                    [record.to_row() for record in defaults],
                )
            except PersistenceError:
                self._records[kind] = []
                logger.error(f"Failed to seed {kind} for room {self.room_id}")
                raise

            logger.info(
                f"Seeded {len(defaults)} {kind} for room {self.room_id}"
            )
            return list(self._records[kind])

    async def upsert(
        self,
        kind: str,
        record: Record,
        on_applied: Optional[Callable[[Record], Awaitable[object]]] = None,
    ) -> Record:
        """
        Reconcile a record into the collection and persist it.

        A record whose id already exists replaces the existing one in
        place; otherwise it is appended.

        Args:
            kind: Record kind
            record: The record to store
            on_applied: Optional coroutine function called with the record
                once it is visible in list() and before it is persisted.
                Writes to the same kind wait until it returns.

        Returns:
            The stored record

        Raises:
            PersistenceError: If the write fails; the cache is restored
        """
        collection = self._collection(kind)
        async with self._locks[kind]:
            records = self._records[kind]
            index = _index_of(records, record.id)
            previous = records[index] if index is not None else None
            if index is None:
                records.append(record)
            else:
                records[index] = record

            if on_applied is not None:
                try:
                    await on_applied(record)
                except BaseException:
                    _restore(records, record, previous)
                    raise

            try:
                await self._run(
                    self.tables.insert_or_update,
                    collection.schema.name,
                    collection.schema.key,
                    record.to_row(),
                )
            except PersistenceError:
                _restore(records, record, previous)
                logger.error(
                    f"Rolled back {kind} {record.id} in room {self.room_id}"
                )
                raise

            return record

    async def remove(self, kind: str, record_id: str) -> bool:
        """
        Remove a record from the collection and its table.

        Args:
            kind: Record kind
            record_id: Id of the record to remove

        Returns:
            True if a record was removed, False if the id was absent

        Raises:
            PersistenceError: If the delete fails; the record is restored
        """
        collection = self._collection(kind)
        async with self._locks[kind]:
            records = self._records[kind]
            index = _index_of(records, record_id)
            if index is None:
                return False

            removed = records.pop(index)
            try:
                await self._run(
                    self.tables.delete_by_key,
                    collection.schema.name,
                    collection.schema.key,
                    record_id,
                )
            except PersistenceError:
                records.insert(index, removed)
                logger.error(
                    f"Restored {kind} {record_id} in room {self.room_id}"
                )
                raise

            return True

    def list(
        self, kind: str, predicate: Optional[Callable[[Record], bool]] = None
    ) -> List[Record]:
        """
        Get the records of a collection in order.

        Each call returns a new list, so callers may iterate it as often
        as they like.

        Args:
            kind: Record kind
            predicate: Optional filter

        Returns:
            List of records
        """
        self._collection(kind)
        records = self._records[kind]
        if predicate is None:
            return list(records)
        return [record for record in records if predicate(record)]

    def get(self, kind: str, record_id: str) -> Optional[Record]:
        """
        Get one record by id.

        Args:
            kind: Record kind
            record_id: Record id

        Returns:
            The record if found, None otherwise
        """
        self._collection(kind)
        records = self._records[kind]
        index = _index_of(records, record_id)
        return records[index] if index is not None else None

    def close(self):
        """Stop the worker thread and release the tables."""
        self._executor.shutdown(wait=True)
        self.tables.close()


def _index_of(records: List[Record], record_id: str) -> Optional[int]:
    for index, record in enumerate(records):
        if record.id == record_id:
            return index
    return None


def _restore(records: List[Record], record: Record, previous: Optional[Record]):
    index = _index_of(records, record.id)
    if previous is None:
        records.pop(index)
    else:
        records[index] = previous

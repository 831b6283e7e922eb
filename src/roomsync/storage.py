"""
Durable Table Storage

Embedded relational storage for a single room. Each room owns one SQLite
database holding one table per record kind. All statements are built with
SQLAlchemy Core, so record values only ever travel as bound parameters.
"""

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    delete,
    literal_column,
    select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .errors import PersistenceError
from .records import TableSchema

logger = logging.getLogger(__name__)

DEFAULT_DB_TIMEOUT = 5  # seconds SQLite waits on a locked database

_COLUMN_TYPES = {
    "text": Text,
    "integer": Integer,
    "boolean": Boolean,
}


def create_room_engine(
    path: Optional[str] = None, timeout: float = DEFAULT_DB_TIMEOUT
) -> Engine:
    """
    Create the SQLAlchemy engine for one room's database.

    Args:
        path: Database file path, or None for a private in-memory database
        timeout: Seconds a write waits for a lock before failing

    Returns:
        Engine: The configured engine
    """
    connect_args = {"check_same_thread": False, "timeout": timeout}
    if path is None:
        # A single shared connection keeps the in-memory database alive
        return create_engine(
            "sqlite://", connect_args=connect_args, poolclass=StaticPool
        )

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return create_engine(f"sqlite:///{path}", connect_args=connect_args)


class TableStore:
    """
    Durable tables for one room.

    Provides create-if-absent, insert-or-update, select-all and
    delete-by-key over the room's database. Methods block; callers run them
    off the event loop. Every database failure is raised as
    PersistenceError.
    """

    def __init__(self, engine: Engine):
        """
        Initialize the table store.

        Args:
            engine: Engine for the room's database
        """
        self.engine = engine
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}

    def ensure_table(self, schema: TableSchema) -> Table:
        """
        Create the table described by schema if it does not exist.

        Calling this again for the same schema is a no-op.

        Args:
            schema: The table schema

        Returns:
            Table: The SQLAlchemy table object
        """
        table = self._tables.get(schema.name)
        if table is None:
            table = Table(
                schema.name,
                self._metadata,
                *[
                    Column(
                        name,
                        _COLUMN_TYPES[column_type](),
                        primary_key=(name == schema.key),
                    )
                    for name, column_type in schema.columns
                ],
            )
            self._tables[schema.name] = table

        try:
            self._metadata.create_all(self.engine, tables=[table])
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to create table {schema.name}: {e}"
            ) from e
        return table

    def insert_or_update(
        self, table_name: str, key: str, fields: Dict[str, Any]
    ):
        """
        Insert a row, or update every non-key column if the key exists.

        Args:
            table_name: Name of an ensured table
            key: Primary key column name
            fields: Full column set for the row, key included
        """
        self.insert_or_update_many(table_name, key, [fields])

    def insert_or_update_many(
        self, table_name: str, key: str, rows: Iterable[Dict[str, Any]]
    ):
        """
        Upsert several rows in a single transaction.

        Either every row is written or none is.

        Args:
            table_name: Name of an ensured table
            key: Primary key column name
            rows: Full column sets, key included
        """
        table = self._table(table_name)
        try:
            with self.engine.begin() as conn:
                for row in rows:
                    stmt = sqlite_insert(table).values(**row)
                    updates = {
                        column.name: stmt.excluded[column.name]
                        for column in table.columns
                        if column.name != key and column.name in row
                    }
                    if updates:
                        stmt = stmt.on_conflict_do_update(
                            index_elements=[key], set_=updates
                        )
                    else:
                        stmt = stmt.on_conflict_do_nothing(index_elements=[key])
                    conn.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to write to {table_name}: {e}") from e

    def select_all(self, table_name: str) -> List[Dict[str, Any]]:
        """
        Read every row of a table.

        Rows come back in insertion order. An upsert keeps the row's
        original position.

        Args:
            table_name: Name of an ensured table

        Returns:
            List of rows as dictionaries
        """
        table = self._table(table_name)
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    select(table).order_by(literal_column("rowid"))
                )
                return [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read {table_name}: {e}") from e

    def delete_by_key(self, table_name: str, key: str, value: Any):
        """
        Delete the row whose key column equals value.

        Deleting an absent key is not an error.

        Args:
            table_name: Name of an ensured table
            key: Primary key column name
            value: Key value to delete
        """
        table = self._table(table_name)
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(table).where(table.c[key] == value))
        except SQLAlchemyError as e:
            raise PersistenceError(
                f"Failed to delete from {table_name}: {e}"
            ) from e

    def close(self):
        """Release all database connections."""
        self.engine.dispose()

    def _table(self, table_name: str) -> Table:
        table = self._tables.get(table_name)
        if table is None:
            raise KeyError(f"Table {table_name} has not been ensured")
        return table

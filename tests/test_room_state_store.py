"""
Tests for the Room State Store

Tests for identity reconciliation, ordering, seeding, reloading and
rollback when the durable write fails.
"""

import asyncio

import pytest
import pytest_asyncio

from roomsync import (
    ChatMessage,
    PersistenceError,
    Prompt,
    RoomStateStore,
    TableStore,
    TodoItem,
    create_room_engine,
)
from roomsync.records import COLLECTIONS, MESSAGES, PROMPTS, TODOS

KINDS = [COLLECTIONS[MESSAGES], COLLECTIONS[TODOS], COLLECTIONS[PROMPTS]]


class FlakyTableStore(TableStore):
    """TableStore whose writes can be made to fail."""

    def __init__(self, engine):
        super().__init__(engine)
        self.fail_writes = False

    def insert_or_update_many(self, table_name, key, rows):
        if self.fail_writes:
            raise PersistenceError("disk full")
        super().insert_or_update_many(table_name, key, rows)

    def delete_by_key(self, table_name, key, value):
        if self.fail_writes:
            raise PersistenceError("disk full")
        super().delete_by_key(table_name, key, value)


def message(message_id, content, user="alice"):
    return ChatMessage(id=message_id, user=user, role="user", content=content)


@pytest.fixture
def engine():
    return create_room_engine()


@pytest.fixture
def tables(engine):
    return FlakyTableStore(engine)


@pytest_asyncio.fixture
async def store(tables):
    store = RoomStateStore(tables, KINDS, room_id="room-1")
    for collection in KINDS:
        await store.load(collection.kind)
    yield store
    store.close()


# ----------------------------------------------------------------------------
# Reconciliation
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_replayed_add_yields_one_record(store):
    """Test that applying the same id twice keeps one record, second wins."""
    await store.upsert(MESSAGES, message("x", "first"))
    await store.upsert(MESSAGES, message("x", "second"))

    records = store.list(MESSAGES)
    assert len(records) == 1
    assert records[0].content == "second"


@pytest.mark.asyncio
async def test_update_preserves_order(store):
    """Test that updating B keeps the order A, B, C."""
    for message_id in ("A", "B", "C"):
        await store.upsert(MESSAGES, message(message_id, message_id))
    await store.upsert(MESSAGES, message("B", "edited"))

    records = store.list(MESSAGES)
    assert [r.id for r in records] == ["A", "B", "C"]
    assert records[1].content == "edited"


@pytest.mark.asyncio
async def test_upsert_writes_through(store, tables):
    """Test that the table holds the same record set as the cache."""
    await store.upsert(MESSAGES, message("A", "hello"))
    await store.upsert(MESSAGES, message("A", "hello again"))

    rows = tables.select_all("messages")
    assert rows == [
        {"id": "A", "user": "alice", "role": "user", "content": "hello again"}
    ]


@pytest.mark.asyncio
async def test_concurrent_duplicate_adds(store):
    """Test that concurrent adds for one id converge on a single record."""
    await asyncio.gather(
        *[store.upsert(MESSAGES, message("dup", f"v{i}")) for i in range(5)]
    )

    records = store.list(MESSAGES)
    assert len(records) == 1
    assert records[0].content == "v4"


# ----------------------------------------------------------------------------
# Listing
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_with_predicate(store):
    """Test filtering a collection."""
    await store.upsert(MESSAGES, message("1", "a", user="alice"))
    await store.upsert(MESSAGES, message("2", "b", user="bob"))

    records = store.list(MESSAGES, lambda m: m.user == "bob")
    assert [r.id for r in records] == ["2"]


@pytest.mark.asyncio
async def test_list_returns_fresh_sequence(store):
    """Test that listing twice gives independent, complete sequences."""
    await store.upsert(MESSAGES, message("1", "a"))

    first = store.list(MESSAGES)
    first.clear()

    assert [r.id for r in store.list(MESSAGES)] == ["1"]


@pytest.mark.asyncio
async def test_get(store):
    """Test looking up one record by id."""
    await store.upsert(MESSAGES, message("1", "a"))

    assert store.get(MESSAGES, "1").content == "a"
    assert store.get(MESSAGES, "missing") is None


def test_unknown_kind_raises_key_error(engine):
    """Test that an unknown kind is a programming error."""
    store = RoomStateStore(TableStore(engine), KINDS)
    try:
        with pytest.raises(KeyError):
            store.list("unknown")
    finally:
        store.close()


# ----------------------------------------------------------------------------
# Remove
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_remove(store, tables):
    """Test removing a record from cache and table."""
    await store.upsert(TODOS, TodoItem(id="t1", content="milk"))
    await store.upsert(TODOS, TodoItem(id="t2", content="eggs"))

    assert await store.remove(TODOS, "t1") is True
    assert [t.id for t in store.list(TODOS)] == ["t2"]
    assert [row["id"] for row in tables.select_all("todos")] == ["t2"]


@pytest.mark.asyncio
async def test_remove_absent_id(store):
    """Test that removing an unknown id reports False without raising."""
    assert await store.remove(TODOS, "missing") is False


# ----------------------------------------------------------------------------
# Load and seed
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reload_reproduces_records(tmp_path):
    """Test that restarting over the same database gives the same todos."""
    path = str(tmp_path / "room.sqlite3")
    todos = [
        TodoItem(id="t1", content="milk", completed=False),
        TodoItem(id="t2", content="eggs", completed=True),
        TodoItem(id="t3", content="bread", completed=False),
    ]

    first = RoomStateStore(TableStore(create_room_engine(path)), KINDS)
    await first.load(TODOS)
    for todo in todos:
        await first.upsert(TODOS, todo)
    first.close()

    second = RoomStateStore(TableStore(create_room_engine(path)), KINDS)
    try:
        loaded = await second.load(TODOS)
    finally:
        second.close()

    assert loaded == todos

@pytest.mark.asyncio
async def test_load_is_idempotent(store):
    """Test that loading twice gives the same collection."""
    await store.upsert(TODOS, TodoItem(id="t1", content="milk"))

    first = await store.load(TODOS)
    second = await store.load(TODOS)

    assert first == second == [TodoItem(id="t1", content="milk")]


@pytest.mark.asyncio
async def test_seed_empty_collection(store, tables):
    """Test that defaults are written to an empty collection."""
    defaults = [Prompt(id="p1", text="one"), Prompt(id="p2", text="two")]

    seeded = await store.seed(PROMPTS, defaults)

    assert seeded == defaults
    assert [row["id"] for row in tables.select_all("prompts")] == ["p1", "p2"]


@pytest.mark.asyncio
async def test_seed_keeps_existing_rows(store, tables):
    """Test that stored rows take precedence over defaults."""
    await store.upsert(PROMPTS, Prompt(id="mine", text="custom"))

    seeded = await store.seed(PROMPTS, [Prompt(id="p1", text="one")])

    assert [p.id for p in seeded] == ["mine"]
    assert [row["id"] for row in tables.select_all("prompts")] == ["mine"]


# ----------------------------------------------------------------------------
# Persistence failures
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_failed_append_is_rolled_back(store, tables):
    """Test that a failed write of a new record leaves no trace."""
    await store.upsert(MESSAGES, message("A", "kept"))
    tables.fail_writes = True

    with pytest.raises(PersistenceError):
        await store.upsert(MESSAGES, message("B", "lost"))

    assert [m.id for m in store.list(MESSAGES)] == ["A"]


@pytest.mark.asyncio
async def test_failed_replace_restores_previous(store, tables):
    """Test that a failed update restores the old record in place."""
    for message_id in ("A", "B", "C"):
        await store.upsert(MESSAGES, message(message_id, "original"))
    tables.fail_writes = True

    with pytest.raises(PersistenceError):
        await store.upsert(MESSAGES, message("B", "changed"))

    records = store.list(MESSAGES)
    assert [r.id for r in records] == ["A", "B", "C"]
    assert records[1].content == "original"


@pytest.mark.asyncio
async def test_failed_remove_restores_record(store, tables):
    """Test that a failed delete puts the record back at its position."""
    await store.upsert(TODOS, TodoItem(id="t1", content="milk"))
    await store.upsert(TODOS, TodoItem(id="t2", content="eggs"))
    tables.fail_writes = True

    with pytest.raises(PersistenceError):
        await store.remove(TODOS, "t1")

    assert [t.id for t in store.list(TODOS)] == ["t1", "t2"]


@pytest.mark.asyncio
async def test_failed_seed_leaves_collection_empty(store, tables):
    """Test that a failed seed does not keep the defaults in memory."""
    tables.fail_writes = True

    with pytest.raises(PersistenceError):
        await store.seed(PROMPTS, [Prompt(id="p1", text="one")])

    assert store.list(PROMPTS) == []


# ----------------------------------------------------------------------------
# Apply hook
# ----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_on_applied_runs_between_apply_and_persist(store, tables):
    """Test that the hook sees the record in memory but not yet stored."""
    seen = []

    async def on_applied(record):
        seen.append(
            (
                [m.id for m in store.list(MESSAGES)],
                tables.select_all("messages"),
            )
        )

    await store.upsert(MESSAGES, message("A", "hello"), on_applied=on_applied)

    assert seen == [(["A"], [])]
    assert len(tables.select_all("messages")) == 1


@pytest.mark.asyncio
async def test_on_applied_failure_rolls_back(store, tables):
    """Test that an error in the hook undoes the change and skips the write."""
    await store.upsert(MESSAGES, message("A", "original"))

    async def on_applied(record):
        raise RuntimeError("hook failed")

    with pytest.raises(RuntimeError):
        await store.upsert(
            MESSAGES, message("A", "changed"), on_applied=on_applied
        )

    assert store.get(MESSAGES, "A").content == "original"
    assert tables.select_all("messages")[0]["content"] == "original"

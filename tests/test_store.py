from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from chat_server.errors import ConfigError, StorageError, ValidationError
from storage import InMemoryMessageStore, create_store
from storage.mongo import MongoConnection, MongoMessageStore

from conftest import FakeCollection, FakeConnection


# -----------------------------------------------------------------------------
# In-memory variant
# -----------------------------------------------------------------------------
def test_append_assigns_counter_ids_and_timestamps():
    store = InMemoryMessageStore()
    first = store.append("hi", "user")
    second = store.append("hello!", "ai")

    assert (first.id, second.id) == ("1", "2")
    assert first.sender == "user" and second.sender == "ai"
    assert first.timestamp.tzinfo is not None
    assert second.timestamp >= first.timestamp


def test_append_then_list_roundtrip_preserves_ids_and_order():
    store = InMemoryMessageStore()
    created = [store.append(f"message {i}", "user" if i % 2 == 0 else "ai") for i in range(25)]

    listed = store.list_all()
    assert [m.id for m in listed] == [m.id for m in created]
    assert listed == created
    # listing does not mutate
    assert store.list_all() == listed


@pytest.mark.parametrize("content", ["", "   ", "\n\t"])
def test_append_rejects_empty_content(content):
    store = InMemoryMessageStore()
    with pytest.raises(ValidationError):
        store.append(content, "user")
    assert store.list_all() == []


def test_append_rejects_oversized_content():
    store = InMemoryMessageStore(max_content_chars=10)
    store.append("x" * 10, "user")
    with pytest.raises(ValidationError):
        store.append("x" * 11, "user")
    assert len(store) == 1


def test_append_rejects_unknown_sender():
    store = InMemoryMessageStore()
    with pytest.raises(ValidationError):
        store.append("hi", "system")


def test_timestamps_never_go_backwards(monkeypatch):
    import storage.memory as memory_mod

    base = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
    clock = iter([base, base - timedelta(seconds=5), base + timedelta(seconds=1)])
    monkeypatch.setattr(memory_mod, "utc_now", lambda: next(clock))

    store = InMemoryMessageStore()
    a = store.append("a", "user")
    b = store.append("b", "ai")
    c = store.append("c", "user")

    assert a.timestamp == base
    assert b.timestamp == base  # clamped, not 5s earlier
    assert c.timestamp == base + timedelta(seconds=1)
    assert [m.content for m in store.list_all()] == ["a", "b", "c"]


def test_ties_break_by_insertion_order(monkeypatch):
    import storage.memory as memory_mod

    fixed = datetime(2024, 5, 1, tzinfo=timezone.utc)
    monkeypatch.setattr(memory_mod, "utc_now", lambda: fixed)

    store = InMemoryMessageStore()
    for i in range(12):
        store.append(f"m{i}", "user")
    assert [m.content for m in store.list_all()] == [f"m{i}" for i in range(12)]


def test_concurrent_appends_get_unique_ids():
    store = InMemoryMessageStore()

    def worker(n: int) -> None:
        for i in range(50):
            store.append(f"t{n}-{i}", "user")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    listed = store.list_all()
    assert len(listed) == 400
    assert len({m.id for m in listed}) == 400
    assert sorted(int(m.id) for m in listed) == list(range(1, 401))


def test_message_json_shape():
    store = InMemoryMessageStore()
    m = store.append("hi", "user")
    data = m.to_dict()

    assert set(data) == {"_id", "id", "content", "sender", "timestamp"}
    assert data["_id"] == data["id"] == "1"
    assert data["timestamp"].endswith("Z")


# -----------------------------------------------------------------------------
# MongoDB variant (fake collection)
# -----------------------------------------------------------------------------
def test_mongo_append_uses_database_ids(fake_collection: FakeCollection):
    store = MongoMessageStore(FakeConnection(fake_collection))
    m = store.append("hello", "user")

    assert len(fake_collection.docs) == 1
    doc = fake_collection.docs[0]
    assert m.id == str(doc["_id"])
    assert doc["content"] == "hello" and doc["sender"] == "user"
    assert doc["timestamp"].microsecond % 1000 == 0


def test_mongo_list_sorts_by_timestamp(fake_collection: FakeCollection):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    # inserted newest first
    for offset in [30, 10, 20]:
        fake_collection.insert_one(
            {"content": f"c{offset}", "sender": "user", "timestamp": base + timedelta(seconds=offset)}
        )

    store = MongoMessageStore(FakeConnection(fake_collection))
    assert [m.content for m in store.list_all()] == ["c10", "c20", "c30"]


def test_mongo_list_normalises_naive_timestamps(fake_collection: FakeCollection):
    fake_collection.insert_one({"content": "x", "sender": "ai", "timestamp": datetime(2024, 1, 1, 8, 0)})
    store = MongoMessageStore(FakeConnection(fake_collection))
    (m,) = store.list_all()
    assert m.timestamp.tzinfo is not None
    assert m.to_dict()["timestamp"] == "2024-01-01T08:00:00.000Z"


def test_mongo_roundtrip(fake_collection: FakeCollection):
    store = MongoMessageStore(FakeConnection(fake_collection))
    created = [store.append(f"m{i}", "user") for i in range(5)]
    assert [m.id for m in store.list_all()] == [m.id for m in created]


def test_mongo_validation_happens_before_insert(fake_collection: FakeCollection):
    store = MongoMessageStore(FakeConnection(fake_collection))
    with pytest.raises(ValidationError):
        store.append("", "user")
    assert fake_collection.docs == []


def test_mongo_driver_errors_become_storage_errors(fake_collection: FakeCollection):
    store = MongoMessageStore(FakeConnection(fake_collection))
    fake_collection.error = ServerSelectionTimeoutError("no servers")

    with pytest.raises(StorageError):
        store.append("hi", "user")
    with pytest.raises(StorageError):
        store.list_all()


def test_mongo_close_closes_connection(fake_collection: FakeCollection):
    conn = FakeConnection(fake_collection)
    MongoMessageStore(conn).close()
    assert conn.closed


def test_mongo_connection_is_lazy():
    conn = MongoConnection("mongodb://localhost:27017/chat-test", client_kwargs={"connect": False})
    assert not conn.connected

    db = conn.database()
    assert db.name == "chat-test"
    assert conn.connected

    conn.close()
    assert not conn.connected


def test_mongo_connection_default_database_name():
    conn = MongoConnection("mongodb://localhost:27017", client_kwargs={"connect": False})
    try:
        assert conn.database().name == "ai-chatbot"
    finally:
        conn.close()


# -----------------------------------------------------------------------------
# Factory
# -----------------------------------------------------------------------------
def test_create_store_defaults_to_memory():
    assert isinstance(create_store({}), InMemoryMessageStore)


def test_create_store_mongo_uses_env_uri():
    store = create_store(
        {"storage": {"backend": "mongo", "collection": "chat"}},
        env={"MONGODB_URI": "mongodb://db.example:27017/prod"},
    )
    assert isinstance(store, MongoMessageStore)
    assert store.connection.uri == "mongodb://db.example:27017/prod"
    assert store.collection_name == "chat"
    assert not store.connection.connected


def test_create_store_rejects_unknown_backend():
    with pytest.raises(ConfigError):
        create_store({"storage": {"backend": "postgres"}})

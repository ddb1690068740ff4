"""
Tests for lexicli.store against the memory, sqlite and redis backends.
"""

import sqlite3

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from conftest import run
from lexicli.config import Settings
from lexicli.errors import StorageOperationFailed
from lexicli.models import Word
from lexicli.store import (
    Collection,
    MemoryStore,
    RedisStore,
    SQLiteStore,
    create_store,
    merge_words,
)

A = Word(ja="あ", en="a")
B = Word(ja="び", en="b")
B2 = Word(ja="びー", en="B")
C = Word(ja="し", en="c")


class FakePipeline:
    def __init__(self, client):
        self.client = client
        self.queued = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def watch(self, name):
        pass

    async def hget(self, name, key):
        return await self.client.hget(name, key)

    def multi(self):
        self.queued = []

    def hset(self, name, key, value):
        self.queued.append((name, key, value))

    async def execute(self):
        if self.client.conflicts:
            self.client.conflicts -= 1
            raise WatchError("changed")
        for name, key, value in self.queued:
            await self.client.hset(name, key, value)
        return [1] * len(self.queued)


class FakeRedis:
    """Just enough of redis.asyncio.Redis for RedisStore."""

    def __init__(self, conflicts=0, broken=False):
        self.hashes = {}
        self.conflicts = conflicts
        self.broken = broken
        self.closed = False

    def _check(self):
        if self.broken:
            raise RedisConnectionError("connection refused")

    async def hget(self, name, key):
        self._check()
        return self.hashes.get(name, {}).get(key)

    async def hset(self, name, key, value):
        self._check()
        self.hashes.setdefault(name, {})[key] = value
        return 1

    async def hdel(self, name, key):
        self._check()
        return 1 if self.hashes.get(name, {}).pop(key, None) is not None else 0

    async def hkeys(self, name):
        self._check()
        return list(self.hashes.get(name, {}))

    def pipeline(self, transaction=True):
        return FakePipeline(self)

    async def aclose(self):
        self.closed = True


@pytest.fixture(params=["memory", "sqlite", "redis"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    if request.param == "sqlite":
        return SQLiteStore(str(tmp_path / "db" / "test.db"))
    return RedisStore(FakeRedis())


def test_merge_words_incoming_wins():
    merged = merge_words([A, B], [B2, C])
    assert len(merged) == 3
    assert B2 in merged
    assert B not in merged


def test_merge_words_keys_are_casefolded():
    street = Word(ja="通り", en="Straße")
    shouted = Word(ja="とおり", en="STRASSE")
    assert street.key == shouted.key == "strasse"
    assert merge_words([street], [shouted]) == [shouted]


def test_get_absent_is_none(any_store):
    assert run(any_store.get(Collection.TESTS, "missing")) is None
    assert run(any_store.load_vocabulary()) is None


def test_vocabulary_round_trip_keeps_order(any_store):
    vocab = [C, A, B]
    run(any_store.save_vocabulary(vocab))
    assert run(any_store.load_vocabulary()) == vocab


def test_merge_save_unions_by_en(any_store):
    run(any_store.merge_save("t", [A, B]))
    result = run(any_store.merge_save("t", [B2, C]))
    stored = run(any_store.get_test("t"))
    assert sorted(w.en for w in stored) == ["B", "a", "c"]
    assert sorted(w.en for w in result) == sorted(w.en for w in stored)


def test_replace_overwrites(any_store):
    run(any_store.merge_save("t", [A, B, C]))
    run(any_store.replace("t", [A]))
    assert run(any_store.get_test("t")) == [A]


def test_delete_and_delete_absent(any_store):
    run(any_store.merge_save("t", [A]))
    run(any_store.delete_test("t"))
    run(any_store.delete_test("t"))
    assert run(any_store.get_test("t")) is None


def test_list_keys(any_store):
    assert run(any_store.list_tests()) == []
    run(any_store.merge_save("week2", [A]))
    run(any_store.merge_save("week1", [B]))
    run(any_store.save_vocabulary([C]))
    assert run(any_store.list_tests()) == ["week1", "week2"]


def test_sqlite_persists_across_instances(tmp_path):
    path = str(tmp_path / "persist.db")
    run(SQLiteStore(path).merge_save("t", [A]))
    assert run(SQLiteStore(path).get_test("t")) == [A]


def test_sqlite_corrupt_record_raises(tmp_path):
    path = str(tmp_path / "corrupt.db")
    store = SQLiteStore(path)
    conn = sqlite3.connect(path)
    with conn:
        conn.execute("INSERT INTO test_records (test_name, words) VALUES ('t', '{bad')")
    conn.close()
    with pytest.raises(StorageOperationFailed):
        run(store.get_test("t"))


def test_redis_merge_retries_on_conflict():
    client = FakeRedis(conflicts=1)
    store = RedisStore(client, prefix="x")
    run(store.merge_save("t", [A]))
    assert run(store.get_test("t")) == [A]
    assert "x:tests" in client.hashes


def test_redis_errors_are_wrapped():
    store = RedisStore(FakeRedis(broken=True))
    with pytest.raises(StorageOperationFailed):
        run(store.get_test("t"))
    with pytest.raises(StorageOperationFailed):
        run(store.merge_save("t", [A]))


def test_redis_close():
    client = FakeRedis()
    run(RedisStore(client).close())
    assert client.closed


def test_create_store_backends(tmp_path):
    config = Settings()
    config.DB_DIR = str(tmp_path)
    config.STORE_BACKEND = "sqlite"
    assert isinstance(create_store(config), SQLiteStore)
    config.STORE_BACKEND = "memory"
    assert isinstance(create_store(config), MemoryStore)
    config.STORE_BACKEND = "none"
    assert create_store(config) is None
    config.STORE_BACKEND = "floppy"
    assert create_store(config) is None

import json
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Iterable, List, Optional

import redis.asyncio as redis
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError, WatchError
from starlette.concurrency import run_in_threadpool

from .config import Settings
from .database import get_db_connection, init_db
from .errors import StorageOperationFailed
from .models import TestRecord, Word

logger = logging.getLogger(__name__)

_WORD_LIST = TypeAdapter(List[Word])


class Collection(str, Enum):
    TESTS = "tests"
    VOCABULARY = "vocabulary"


# The vocabulary collection holds a single snapshot under this key.
VOCABULARY_KEY = "main"


def merge_words(existing: Iterable[Word], incoming: Iterable[Word]) -> List[Word]:
    """Union keyed by Word.key; the incoming entry wins on conflict."""
    merged: Dict[str, Word] = {}
    for word in existing:
        merged[word.key] = word
    for word in incoming:
        merged[word.key] = word
    return list(merged.values())


def encode_words(words: Iterable[Word]) -> str:
    return json.dumps([word.model_dump() for word in words], ensure_ascii=False)


def decode_words(raw) -> List[Word]:
    try:
        return _WORD_LIST.validate_json(raw)
    except PydanticValidationError as e:
        raise StorageOperationFailed(f"Stored word list is corrupt: {e}") from e


# --- Capability interface ---
class Store(ABC):
    """Key-value persistence over the test-list and vocabulary collections."""

    @abstractmethod
    async def get(self, collection: Collection, key: str) -> Optional[List[Word]]:
        """Returns the stored words, or None when the key is absent."""

    @abstractmethod
    async def put(self, collection: Collection, key: str, words: List[Word]) -> None:
        pass

    @abstractmethod
    async def delete(self, collection: Collection, key: str) -> None:
        """Removes the key. Deleting an absent key is not an error."""

    @abstractmethod
    async def list_keys(self, collection: Collection) -> List[str]:
        pass

    @abstractmethod
    async def merge_save(self, test_name: str, words: List[Word]) -> List[Word]:
        """Merges `words` into the named test atomically and returns the result."""

    async def replace(self, test_name: str, words: List[Word]) -> None:
        await self.put(Collection.TESTS, test_name, words)

    async def delete_test(self, test_name: str) -> None:
        await self.delete(Collection.TESTS, test_name)

    async def get_test(self, test_name: str) -> Optional[List[Word]]:
        return await self.get(Collection.TESTS, test_name)

    async def get_record(self, test_name: str) -> Optional[TestRecord]:
        words = await self.get_test(test_name)
        if words is None:
            return None
        return TestRecord(test_name=test_name, words=words)

    async def list_tests(self) -> List[str]:
        return await self.list_keys(Collection.TESTS)

    async def load_vocabulary(self) -> Optional[List[Word]]:
        return await self.get(Collection.VOCABULARY, VOCABULARY_KEY)

    async def save_vocabulary(self, words: List[Word]) -> None:
        await self.put(Collection.VOCABULARY, VOCABULARY_KEY, words)

    async def close(self) -> None:
        pass


class MemoryStore(Store):
    """In-process store; state lives as long as the object."""

    def __init__(self):
        self._data: Dict[Collection, Dict[str, List[Word]]] = {
            collection: {} for collection in Collection
        }

    async def get(self, collection, key):
        words = self._data[collection].get(key)
        return list(words) if words is not None else None

    async def put(self, collection, key, words):
        self._data[collection][key] = list(words)

    async def delete(self, collection, key):
        self._data[collection].pop(key, None)

    async def list_keys(self, collection):
        return sorted(self._data[collection])

    async def merge_save(self, test_name, words):
        tests = self._data[Collection.TESTS]
        merged = merge_words(tests.get(test_name, []), words)
        tests[test_name] = merged
        return list(merged)


class SQLiteStore(Store):
    """Store backed by the `test_records` and `vocabulary` sqlite tables."""

    _TABLES = {
        Collection.TESTS: ("test_records", "test_name"),
        Collection.VOCABULARY: ("vocabulary", "key"),
    }

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    def _run(self, func, *args):
        conn = get_db_connection(self.db_path)
        try:
            return func(conn, *args)
        except sqlite3.Error as e:
            logger.error(f"SQLite operation {func.__name__} failed: {e}")
            raise StorageOperationFailed(str(e)) from e
        finally:
            conn.close()

    def _get(self, conn, collection, key):
        table, column = self._TABLES[collection]
        row = conn.execute(
            f"SELECT words FROM {table} WHERE {column} = ?", (key,)
        ).fetchone()
        return decode_words(row["words"]) if row else None

    def _put(self, conn, collection, key, words):
        table, column = self._TABLES[collection]
        with conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} ({column}, words) VALUES (?, ?)",
                (key, encode_words(words)),
            )

    def _delete(self, conn, collection, key):
        table, column = self._TABLES[collection]
        with conn:
            conn.execute(f"DELETE FROM {table} WHERE {column} = ?", (key,))

    def _list_keys(self, conn, collection):
        table, column = self._TABLES[collection]
        rows = conn.execute(f"SELECT {column} FROM {table} ORDER BY {column}")
        return [row[0] for row in rows]

    def _merge_save(self, conn, test_name, words):
        # Read and write under one write lock so concurrent merges serialize.
        conn.isolation_level = None
        conn.execute("BEGIN IMMEDIATE")
        try:
            existing = self._get(conn, Collection.TESTS, test_name) or []
            merged = merge_words(existing, words)
            conn.execute(
                "INSERT OR REPLACE INTO test_records (test_name, words) VALUES (?, ?)",
                (test_name, encode_words(merged)),
            )
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
        return merged

    async def get(self, collection, key):
        return await run_in_threadpool(self._run, self._get, collection, key)

    async def put(self, collection, key, words):
        await run_in_threadpool(self._run, self._put, collection, key, list(words))

    async def delete(self, collection, key):
        await run_in_threadpool(self._run, self._delete, collection, key)

    async def list_keys(self, collection):
        return await run_in_threadpool(self._run, self._list_keys, collection)

    async def merge_save(self, test_name, words):
        return await run_in_threadpool(
            self._run, self._merge_save, test_name, list(words)
        )


class RedisStore(Store):
    """Store keeping one redis hash per collection."""

    def __init__(self, client, prefix: str = "lexicli"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "lexicli") -> "RedisStore":
        return cls(redis.from_url(url, decode_responses=True), prefix)

    def _hash(self, collection: Collection) -> str:
        return f"{self.prefix}:{collection.value}"

    async def get(self, collection, key):
        try:
            raw = await self.client.hget(self._hash(collection), key)
        except RedisError as e:
            raise StorageOperationFailed(str(e)) from e
        return decode_words(raw) if raw is not None else None

    async def put(self, collection, key, words):
        try:
            await self.client.hset(self._hash(collection), key, encode_words(words))
        except RedisError as e:
            raise StorageOperationFailed(str(e)) from e

    async def delete(self, collection, key):
        try:
            await self.client.hdel(self._hash(collection), key)
        except RedisError as e:
            raise StorageOperationFailed(str(e)) from e

    async def list_keys(self, collection):
        try:
            keys = await self.client.hkeys(self._hash(collection))
        except RedisError as e:
            raise StorageOperationFailed(str(e)) from e
        return sorted(keys)

    async def merge_save(self, test_name, words):
        name = self._hash(Collection.TESTS)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(name)
                        raw = await pipe.hget(name, test_name)
                        existing = decode_words(raw) if raw is not None else []
                        merged = merge_words(existing, words)
                        pipe.multi()
                        pipe.hset(name, test_name, encode_words(merged))
                        await pipe.execute()
                        return merged
                    except WatchError:
                        logger.warning(f"Test '{test_name}' changed during merge, retrying")
        except RedisError as e:
            raise StorageOperationFailed(str(e)) from e

    async def close(self):
        await self.client.aclose()


def create_store(config: Settings) -> Optional[Store]:
    """Builds the configured store; None means persistence is unavailable."""
    backend = config.STORE_BACKEND.lower()
    if backend == "sqlite":
        return SQLiteStore(os.path.join(config.DB_DIR, config.DB_FILE))
    if backend == "redis":
        return RedisStore.from_url(config.REDIS_URL, config.REDIS_PREFIX)
    if backend == "memory":
        return MemoryStore()
    if backend != "none":
        logger.error(f"Unknown store backend '{config.STORE_BACKEND}', running without storage")
    return None

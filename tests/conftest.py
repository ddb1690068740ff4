"""
Pytest configuration for lexicli.

Provides a small vocabulary, an in-memory store and a dispatcher with a
seeded random generator so sessions are reproducible.
"""

import asyncio
import json
import random

import pytest

from lexicli.config import settings
from lexicli.dispatcher import Dispatcher
from lexicli.models import Word
from lexicli.store import MemoryStore

WORDS = [
    Word(ja="を食べる；たべる", en="eat"),
    Word(ja="犬（いぬ）", en="dog"),
    Word(ja="猫，ねこ", en="cat"),
    Word(ja="本", en="book"),
    Word(ja="水；みず", en="water"),
]


def run(coro):
    """Drives a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "LOG_DIR", str(tmp_path / "log"))


@pytest.fixture
def words():
    return list(WORDS)


@pytest.fixture
def vocab_file(tmp_path, words):
    path = tmp_path / "vocab.json"
    path.write_text(
        json.dumps([w.model_dump() for w in words], ensure_ascii=False), encoding="utf-8"
    )
    return str(path)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def dispatcher(store, vocab_file):
    return Dispatcher(store, vocab_file, history_size=5, rng=random.Random(7))

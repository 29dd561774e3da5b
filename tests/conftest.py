"""
Pytest configuration and shared fixtures

Every store fixture starts from an empty backend, so global versions in a
test always begin at 1.
"""

import tempfile
from pathlib import Path
from typing import Iterator

import pytest

from event_ledger.backends import InMemoryBackend, SQLiteBackend
from event_ledger.store import EventStore


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "ledger.db"


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    """Provide a fresh in-memory backend"""
    return InMemoryBackend()


@pytest.fixture
def sqlite_backend(temp_db: Path) -> SQLiteBackend:
    """Provide a fresh SQLite backend"""
    return SQLiteBackend(temp_db)


@pytest.fixture(params=["memory", "sqlite"])
def event_store(request: pytest.FixtureRequest, temp_db: Path) -> EventStore:
    """
    Provide a fresh event store, once per local backend

    Store-level behaviour must not depend on the backend, so every test using
    this fixture runs against both.
    """
    if request.param == "memory":
        return EventStore(InMemoryBackend())
    return EventStore(SQLiteBackend(temp_db))

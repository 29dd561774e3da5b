"""
Tests for LedgerSettings and backend selection
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from event_ledger.backends import InMemoryBackend, SQLiteBackend, build_backend
from event_ledger.kernel.config import LedgerSettings
from event_ledger.store import EventStore


def test_defaults() -> None:
    settings = LedgerSettings()

    assert settings.backend == "sqlite"
    assert settings.table_name == "EventStoreTable"
    assert settings.page_size == 100
    assert settings.endpoint_url is None


def test_from_env_reads_prefixed_variables() -> None:
    settings = LedgerSettings.from_env(
        {
            "EVENT_LEDGER_BACKEND": "dynamodb",
            "EVENT_LEDGER_TABLE_NAME": "Orders",
            "EVENT_LEDGER_REGION": "eu-west-1",
            "EVENT_LEDGER_ENDPOINT_URL": "http://localhost:8000",
            "EVENT_LEDGER_PAGE_SIZE": "25",
            "EVENT_LEDGER_REQUEST_TIMEOUT": "2.5",
            "EVENT_LEDGER_JSON_LOGS": "true",
            "UNRELATED": "ignored",
        }
    )

    assert settings.backend == "dynamodb"
    assert settings.table_name == "Orders"
    assert settings.region_name == "eu-west-1"
    assert settings.endpoint_url == "http://localhost:8000"
    assert settings.page_size == 25
    assert settings.request_timeout_seconds == 2.5
    assert settings.json_logs is True


def test_from_env_empty_gives_defaults() -> None:
    assert LedgerSettings.from_env({}) == LedgerSettings()


@pytest.mark.parametrize(
    "env",
    [
        {"EVENT_LEDGER_BACKEND": "postgres"},
        {"EVENT_LEDGER_PAGE_SIZE": "0"},
        {"EVENT_LEDGER_PAGE_SIZE": "many"},
        {"EVENT_LEDGER_REQUEST_TIMEOUT": "-1"},
    ],
)
def test_from_env_rejects_invalid_values(env) -> None:
    with pytest.raises(ValidationError):
        LedgerSettings.from_env(env)


def test_build_memory_backend() -> None:
    assert isinstance(build_backend(LedgerSettings(backend="memory")), InMemoryBackend)


def test_build_sqlite_backend(temp_db: Path) -> None:
    backend = build_backend(LedgerSettings(backend="sqlite", sqlite_path=temp_db))

    assert isinstance(backend, SQLiteBackend)
    assert temp_db.exists()


def test_store_from_settings() -> None:
    store = EventStore.from_settings(LedgerSettings(backend="memory", page_size=7))

    assert store.page_size == 7
    assert isinstance(store.backend, InMemoryBackend)

"""
Ledger settings - which backend to use and how to talk to it

Settings are a pydantic model so that values read from the environment are
validated once, at startup, instead of failing on the first save.

Environment variables (all optional):
    EVENT_LEDGER_BACKEND          memory | sqlite | dynamodb
    EVENT_LEDGER_SQLITE_PATH      path of the SQLite database file
    EVENT_LEDGER_TABLE_NAME       DynamoDB table name
    EVENT_LEDGER_REGION           AWS region
    EVENT_LEDGER_ENDPOINT_URL     DynamoDB endpoint (e.g. dynamodb-local)
    EVENT_LEDGER_PAGE_SIZE        records fetched per query page
    EVENT_LEDGER_REQUEST_TIMEOUT  per-request timeout in seconds
    EVENT_LEDGER_JSON_LOGS        "true" for JSON log output
    EVENT_LEDGER_LOG_LEVEL        DEBUG, INFO, ...
"""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

ENV_PREFIX = "EVENT_LEDGER_"

_ENV_FIELDS = {
    "BACKEND": "backend",
    "SQLITE_PATH": "sqlite_path",
    "TABLE_NAME": "table_name",
    "REGION": "region_name",
    "ENDPOINT_URL": "endpoint_url",
    "PAGE_SIZE": "page_size",
    "REQUEST_TIMEOUT": "request_timeout_seconds",
    "JSON_LOGS": "json_logs",
    "LOG_LEVEL": "log_level",
}


class LedgerSettings(BaseModel):
    """
    Runtime configuration of an event store

    The defaults give a local SQLite file store with 100-record query pages.
    """

    backend: Literal["memory", "sqlite", "dynamodb"] = Field(
        default="sqlite",
        description="Storage backend implementation",
    )

    sqlite_path: Path = Field(
        default=Path(".event_ledger.db"),
        description="SQLite database file (sqlite backend only)",
    )

    table_name: str = Field(
        default="EventStoreTable",
        min_length=3,
        max_length=255,
        description="DynamoDB table holding events and the global counter",
    )

    region_name: str = Field(
        default="us-east-1",
        description="AWS region (dynamodb backend only)",
    )

    endpoint_url: str | None = Field(
        default=None,
        description="Override DynamoDB endpoint, e.g. http://localhost:8000",
    )

    page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Records fetched per query page; the iterator follows continuation keys",
    )

    request_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Upper bound for a single backend request",
    )

    json_logs: bool = Field(
        default=False,
        description="Emit JSON logs instead of console output",
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LedgerSettings":
        """
        Build settings from EVENT_LEDGER_* environment variables

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        values = {
            field_name: env[ENV_PREFIX + suffix]
            for suffix, field_name in _ENV_FIELDS.items()
            if ENV_PREFIX + suffix in env
        }
        return cls(**values)

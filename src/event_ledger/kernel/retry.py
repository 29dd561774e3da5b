"""
Retry with exponential backoff for SQLite lock contention.

SQLite uses file-based locking and answers "database is locked" when another
connection holds the write lock longer than the busy timeout. The SQLite
backend retries those errors, which belong to the storage engine, the same
way botocore retries throttled DynamoDB requests. The store itself never
retries: concurrency conflicts and other failures go straight to the caller.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from event_ledger.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_lock_contention(exc: BaseException) -> bool:
    """True for sqlite3 'database is locked' / 'database is busy' errors."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 50,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention.

    Only lock errors are retried; every other OperationalError (missing
    table, disk I/O) propagates on the first attempt.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait_ms: Minimum wait time in milliseconds (default: 50)
        max_wait_ms: Maximum wait time in milliseconds (default: 1000)

    Returns:
        Decorated function that retries on lock contention

    Example:
        @retry_on_sqlite_lock()
        def transact_write(...):
            conn.execute("BEGIN IMMEDIATE")
    """
    return retry(
        retry=retry_if_exception(is_lock_contention),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )

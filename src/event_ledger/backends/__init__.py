"""
Storage backends - where the ledger's records actually live

- memory: dict behind a lock (tests, experiments)
- sqlite: single file, BEGIN IMMEDIATE transactions (local, single host)
- dynamodb: boto3 client against a DynamoDB table (production)
"""

from event_ledger.backends.memory import InMemoryBackend
from event_ledger.backends.sqlite import SQLiteBackend
from event_ledger.kernel.backend import StorageBackend
from event_ledger.kernel.config import LedgerSettings


def build_backend(settings: LedgerSettings) -> StorageBackend:
    """
    Construct the backend selected by settings

    The DynamoDB adapter is imported lazily so the other backends work
    without AWS credentials or network configuration in the environment.
    """
    if settings.backend == "memory":
        return InMemoryBackend()
    if settings.backend == "sqlite":
        return SQLiteBackend(settings.sqlite_path, request_timeout=settings.request_timeout_seconds)

    from event_ledger.backends.dynamodb import DynamoDBBackend

    return DynamoDBBackend(
        settings.table_name,
        region_name=settings.region_name,
        endpoint_url=settings.endpoint_url,
        request_timeout=settings.request_timeout_seconds,
    )


__all__ = ["InMemoryBackend", "SQLiteBackend", "build_backend"]

"""
In-memory storage backend

Keeps records in a dict keyed by (aggregate_id, version) behind a single
lock, which makes increments and transactions trivially atomic. Meant for
tests and local experiments; nothing survives the process.
"""

import copy
import threading
from collections.abc import Sequence
from typing import Any

from event_ledger.kernel.backend import (
    PutRecord,
    QueryPage,
    QueryRequest,
    Record,
    RecordKey,
    RequireRecord,
    WriteCondition,
    WriteOperation,
)
from event_ledger.kernel.codec import AGGREGATE_ID, VERSION
from event_ledger.kernel.deadline import Deadline, check_deadline
from event_ledger.kernel.errors import ConditionCheckFailed


class InMemoryBackend:
    """Thread-safe dict-backed implementation of StorageBackend"""

    max_transaction_items = 100

    def __init__(self) -> None:
        self._records: dict[tuple[str, int], Record] = {}
        self._lock = threading.Lock()

    def increment(
        self,
        key: RecordKey,
        attribute: str,
        *,
        deadline: Deadline | None = None,
    ) -> Any:
        check_deadline(deadline, "increment")
        with self._lock:
            record = self._records.setdefault(
                (key.aggregate_id, key.version),
                {AGGREGATE_ID: key.aggregate_id, VERSION: key.version},
            )
            record[attribute] = record.get(attribute, 0) + 1
            return record[attribute]

    def query(
        self,
        request: QueryRequest,
        *,
        deadline: Deadline | None = None,
    ) -> QueryPage:
        check_deadline(deadline, "query")
        with self._lock:
            versions = sorted(
                version
                for (aggregate_id, version) in self._records
                if aggregate_id == request.aggregate_id
            )
            if not request.ascending:
                versions.reverse()
            if request.after_version is not None:
                versions = [v for v in versions if v > request.after_version]
            if request.start_key is not None:
                start = request.start_key.version
                versions = [
                    v for v in versions if (v > start if request.ascending else v < start)
                ]

            last_key = None
            if request.limit is not None and len(versions) > request.limit:
                versions = versions[: request.limit]
                last_key = RecordKey(request.aggregate_id, versions[-1])

            records = [
                copy.deepcopy(self._records[(request.aggregate_id, v)]) for v in versions
            ]
        return QueryPage(records=records, last_key=last_key)

    def transact_write(
        self,
        operations: Sequence[WriteOperation],
        *,
        deadline: Deadline | None = None,
    ) -> None:
        check_deadline(deadline, "transact_write")
        with self._lock:
            pending: dict[tuple[str, int], Record] = {}
            for operation in operations:
                if isinstance(operation, RequireRecord):
                    key = (operation.key.aggregate_id, operation.key.version)
                    if key not in self._records and key not in pending:
                        raise ConditionCheckFailed(
                            message=f"required record {key} does not exist"
                        )
                elif isinstance(operation, PutRecord):
                    key = (operation.key.aggregate_id, operation.key.version)
                    if operation.condition is WriteCondition.NOT_EXISTS and (
                        key in self._records or key in pending
                    ):
                        raise ConditionCheckFailed(message=f"record {key} already exists")
                    pending[key] = copy.deepcopy(operation.record)
                else:
                    raise TypeError(f"Unsupported write operation: {operation!r}")
            self._records.update(pending)

    def record_count(self) -> int:
        """Number of stored records, the counter record included"""
        with self._lock:
            return len(self._records)

"""
Aggregate version lookup and the optimistic concurrency pre-check

The pre-check catches the common conflict (a stale writer) before any global
version is spent. It is not atomic with the commit: two writers can both pass
it. The batch writer's predecessor check and insert-only guards decide the
actual winner.
"""

from collections.abc import Sequence

from event_ledger.kernel.backend import QueryRequest, StorageBackend
from event_ledger.kernel.codec import VERSION, decode_uint
from event_ledger.kernel.deadline import Deadline, check_deadline
from event_ledger.kernel.errors import ConcurrencyError
from event_ledger.kernel.events import Event
from event_ledger.kernel.metrics import concurrency_conflicts_total


class AggregateVersionReader:
    """Resolves the last persisted version of an aggregate"""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    def last_version(self, aggregate_id: str, *, deadline: Deadline | None = None) -> int:
        """
        Return the version of the aggregate's most recent event (0 if none)

        Issues a descending, limit-1 range query.
        """
        check_deadline(deadline, "read_last_version")
        page = self.backend.query(
            QueryRequest(aggregate_id=aggregate_id, ascending=False, limit=1),
            deadline=deadline,
        )
        if not page.records:
            return 0
        return decode_uint(page.records[0].get(VERSION), VERSION)


class ConcurrencyGuard:
    """Checks that a batch starts right after the aggregate's last version"""

    def check(self, events: Sequence[Event], last_version: int) -> None:
        """
        Raises:
            ConcurrencyError: If events[0].version != last_version + 1
        """
        first = events[0]
        if first.version != last_version + 1:
            concurrency_conflicts_total.labels(stage="precheck").inc()
            raise ConcurrencyError(first.aggregate_id, first.version, last_version)


def validate_batch(events: Sequence[Event]) -> None:
    """
    Reject malformed batches before any request is made

    Raises:
        ValueError: If the batch mixes aggregates or its versions are not contiguous
    """
    first = events[0]
    for offset, event in enumerate(events):
        if event.aggregate_id != first.aggregate_id:
            raise ValueError(
                f"Batch mixes aggregates {first.aggregate_id!r} and {event.aggregate_id!r}"
            )
        if event.version != first.version + offset:
            raise ValueError(
                f"Batch versions must be contiguous: expected {first.version + offset}, "
                f"got {event.version} for aggregate {first.aggregate_id!r}"
            )

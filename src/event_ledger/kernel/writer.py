"""
Batched append writer - one transaction per save

Each event becomes an insert-only put keyed by (AggregateID, Version). When
the batch does not start at version 1, the transaction also requires the
predecessor record (AggregateID, first.version - 1) to exist. Together these
make the commit a compare-and-append: it succeeds only if the slot right
after the aggregate's current tail is free and that tail really exists.

The whole set, plus any extra operations the caller wants committed
alongside the events, is submitted as a single all-or-nothing transaction.
"""

from collections.abc import Sequence

from event_ledger.kernel.backend import (
    PutRecord,
    RecordKey,
    RequireRecord,
    StorageBackend,
    WriteCondition,
    WriteOperation,
)
from event_ledger.kernel.codec import encode_event
from event_ledger.kernel.deadline import Deadline, check_deadline
from event_ledger.kernel.errors import ConcurrencyError, ConditionCheckFailed
from event_ledger.kernel.events import Event
from event_ledger.kernel.logging import get_logger
from event_ledger.kernel.metrics import concurrency_conflicts_total

logger = get_logger(__name__)


class BatchedAppendWriter:
    """Builds and submits the conditional writes of one save"""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    def build_operations(
        self,
        events: Sequence[Event],
        extra: Sequence[WriteOperation] = (),
    ) -> list[WriteOperation]:
        """
        Build the transaction items for a batch

        Args:
            events: Contiguous events of one aggregate, global versions assigned
            extra: Additional operations committed in the same transaction

        Returns:
            Predecessor check (if any), one put per event, then the extras
        """
        first = events[0]
        operations: list[WriteOperation] = []
        if first.version > 1:
            operations.append(RequireRecord(RecordKey(first.aggregate_id, first.version - 1)))
        operations.extend(
            PutRecord(encode_event(event), condition=WriteCondition.NOT_EXISTS)
            for event in events
        )
        operations.extend(extra)
        return operations

    def write(
        self,
        events: Sequence[Event],
        *,
        extra: Sequence[WriteOperation] = (),
        deadline: Deadline | None = None,
    ) -> None:
        """
        Commit the batch atomically

        Raises:
            ConcurrencyError: If any guard condition failed (nothing was written)
            DeadlineExceeded: If the deadline expired before the commit
            BackendError: On any other backend failure
        """
        operations = self.build_operations(events, extra)
        check_deadline(deadline, "transact_write")
        try:
            self.backend.transact_write(operations, deadline=deadline)
        except ConditionCheckFailed as e:
            first = events[0]
            concurrency_conflicts_total.labels(stage="commit").inc()
            logger.warning(
                "Append rejected by guard condition",
                aggregate_id=first.aggregate_id,
                first_version=first.version,
                batch_size=len(events),
            )
            raise ConcurrencyError(first.aggregate_id, first.version) from e

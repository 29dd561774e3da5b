"""
EventStore - Main façade

Composes the kernel pieces into the two operations callers need:

- save(events): optimistic-concurrency append with global ordering
- get(aggregate_id, aggregate_type, after_version): lazy read of history

Example:
    >>> from event_ledger import EventStore, create_event
    >>> from event_ledger.backends import SQLiteBackend
    >>> store = EventStore(SQLiteBackend("ledger.db"))
    >>> event = create_event(aggregate_id="order-42", aggregate_type="order",
    ...                      version=1, reason="OrderPlaced", data=b"{}")
    >>> store.save([event])
    >>> event.global_version
    1
    >>> with store.get("order-42", "order", 0) as it:
    ...     history = list(it)
"""

import dataclasses
import time
from collections.abc import Sequence

from event_ledger.backends import build_backend
from event_ledger.kernel.allocator import GlobalVersionAllocator
from event_ledger.kernel.backend import (
    QueryPage,
    QueryRequest,
    RecordKey,
    StorageBackend,
    WriteOperation,
)
from event_ledger.kernel.config import LedgerSettings
from event_ledger.kernel.deadline import Deadline, check_deadline
from event_ledger.kernel.errors import BackendError, ConditionCheckFailed
from event_ledger.kernel.events import Event
from event_ledger.kernel.iterator import ResultIterator
from event_ledger.kernel.logging import LogOperation, get_logger
from event_ledger.kernel.metrics import (
    backend_errors_total,
    events_appended_total,
    save_duration_seconds,
)
from event_ledger.kernel.versions import (
    AggregateVersionReader,
    ConcurrencyGuard,
    validate_batch,
)
from event_ledger.kernel.writer import BatchedAppendWriter

logger = get_logger(__name__)


class EventStore:
    """
    Append-only event store façade

    Guarantees:
    - Per-aggregate versions stay contiguous (1, 2, 3, ...) with no duplicates
    - Every committed event gets a global version greater than all earlier ones
    - A save is all-or-nothing; global versions spent on a failed save are
      never reissued, leaving gaps in the global sequence
    """

    def __init__(self, backend: StorageBackend, *, page_size: int = 100) -> None:
        """
        Initialize the store

        Args:
            backend: Storage backend providing increment/query/transact_write
            page_size: Records requested per query page when reading history
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self.backend = backend
        self.page_size = page_size
        self.allocator = GlobalVersionAllocator(backend)
        self.version_reader = AggregateVersionReader(backend)
        self.guard = ConcurrencyGuard()
        self.writer = BatchedAppendWriter(backend)

    @classmethod
    def from_settings(cls, settings: LedgerSettings | None = None) -> "EventStore":
        """Build a store from settings (EVENT_LEDGER_* environment when omitted)"""
        settings = settings or LedgerSettings.from_env()
        return cls(build_backend(settings), page_size=settings.page_size)

    def save(
        self,
        events: Sequence[Event],
        *,
        deadline: Deadline | None = None,
        extra_writes: Sequence[WriteOperation] = (),
    ) -> None:
        """
        Append events to their aggregate

        Steps: read the aggregate's last version, check the batch starts right
        after it, allocate one global version per event, commit everything
        in one transaction. On success each event's global_version is set in
        place; on failure the events are left untouched.

        Args:
            events: Contiguous events of a single aggregate, in order
            deadline: Checked before every backend request made by the save
            extra_writes: Additional operations committed atomically with the events

        Raises:
            ValueError: If the batch mixes aggregates, has gaps, or is too large
            ConcurrencyError: If the first version does not follow the stored
                history, or the commit's guard conditions fail
            DeadlineExceeded: If the deadline expires or is cancelled
            BackendError: On any other backend failure
            SerializationError: If the global counter holds a corrupt value
        """
        if not events:
            return

        validate_batch(events)
        first = events[0]
        size = len(events) + len(extra_writes) + (1 if first.version > 1 else 0)
        if size > self.backend.max_transaction_items:
            raise ValueError(
                f"Save needs {size} transaction items, backend allows "
                f"{self.backend.max_transaction_items}"
            )

        start = time.perf_counter()
        with LogOperation(
            logger,
            "save_events",
            aggregate_id=first.aggregate_id,
            aggregate_type=first.aggregate_type,
            first_version=first.version,
            batch_size=len(events),
        ):
            try:
                last_version = self.version_reader.last_version(
                    first.aggregate_id, deadline=deadline
                )
                self.guard.check(events, last_version)

                # One round trip per event, in input order
                global_versions = [self.allocator.next(deadline=deadline) for _ in events]
                stamped = [
                    event.model_copy(update={"global_version": global_version})
                    for event, global_version in zip(events, global_versions)
                ]

                self.writer.write(stamped, extra=extra_writes, deadline=deadline)
            except BackendError as e:
                if not isinstance(e, ConditionCheckFailed):
                    backend_errors_total.labels(operation=e.operation).inc()
                raise

            for event, global_version in zip(events, global_versions):
                event.global_version = global_version

        save_duration_seconds.observe(time.perf_counter() - start)
        events_appended_total.labels(aggregate_type=first.aggregate_type).inc(len(events))

    def get(
        self,
        aggregate_id: str,
        aggregate_type: str,
        after_version: int = 0,
        *,
        deadline: Deadline | None = None,
    ) -> ResultIterator:
        """
        Read an aggregate's events with version > after_version, ascending

        The first page is fetched now; later pages are fetched lazily by the
        iterator, under the same deadline. aggregate_type is accepted for
        interface compatibility; the aggregate id alone selects the history.

        Returns:
            Iterator over the events (immediately exhausted for unknown aggregates)

        Raises:
            DeadlineExceeded: If the deadline expires or is cancelled
            BackendError: If the query fails
        """
        request = QueryRequest(
            aggregate_id=aggregate_id,
            after_version=after_version,
            ascending=True,
            limit=self.page_size,
        )

        def fetch_page(start_key: RecordKey) -> QueryPage:
            check_deadline(deadline, "query")
            return self._query(dataclasses.replace(request, start_key=start_key), deadline)

        with LogOperation(
            logger,
            "get_events",
            aggregate_id=aggregate_id,
            aggregate_type=aggregate_type,
            after_version=after_version,
        ):
            check_deadline(deadline, "query")
            page = self._query(request, deadline)

        return ResultIterator(page, fetch_page)

    def last_version(self, aggregate_id: str, *, deadline: Deadline | None = None) -> int:
        """Version of the aggregate's latest event (0 if it has none)"""
        return self.version_reader.last_version(aggregate_id, deadline=deadline)

    def _query(self, request: QueryRequest, deadline: Deadline | None) -> QueryPage:
        try:
            return self.backend.query(request, deadline=deadline)
        except BackendError as e:
            backend_errors_total.labels(operation=e.operation).inc()
            raise

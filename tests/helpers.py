"""
Test Helper Functions - Builders and test doubles

Builders keep the tests focused on versions and ordering instead of event
boilerplate; FailingBackend lets a test break exactly one backend primitive.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from event_ledger.backends import InMemoryBackend
from event_ledger.kernel.backend import QueryPage, QueryRequest, RecordKey, WriteOperation
from event_ledger.kernel.deadline import Deadline
from event_ledger.kernel.errors import BackendError
from event_ledger.kernel.events import Event, create_event

FIXED_TIME = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_event(
    aggregate_id: str = "A1",
    version: int = 1,
    data: bytes = b"x",
    aggregate_type: str = "order",
    reason: str = "Changed",
) -> Event:
    """Builder for an unsaved event"""
    return create_event(
        aggregate_id=aggregate_id,
        aggregate_type=aggregate_type,
        version=version,
        data=data,
        reason=reason,
        timestamp=FIXED_TIME,
    )


def make_batch(aggregate_id: str, first_version: int, count: int) -> list[Event]:
    """Builder for ``count`` contiguous events starting at ``first_version``"""
    return [
        make_event(aggregate_id, first_version + i, data=f"e{first_version + i}".encode())
        for i in range(count)
    ]


class FailingBackend(InMemoryBackend):
    """
    In-memory backend that fails selected primitives with BackendError

    Calls are recorded so tests can assert which requests were made.
    """

    def __init__(self, fail_on: set[str] | None = None) -> None:
        super().__init__()
        self.fail_on = fail_on or set()
        self.calls: list[str] = []

    def _maybe_fail(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise BackendError(operation, "injected failure", code="ServiceUnavailable")

    def increment(self, key: RecordKey, attribute: str, *, deadline: Deadline | None = None) -> Any:
        self._maybe_fail("increment")
        return super().increment(key, attribute, deadline=deadline)

    def query(self, request: QueryRequest, *, deadline: Deadline | None = None) -> QueryPage:
        self._maybe_fail("query")
        return super().query(request, deadline=deadline)

    def transact_write(
        self, operations: Sequence[WriteOperation], *, deadline: Deadline | None = None
    ) -> None:
        self._maybe_fail("transact_write")
        super().transact_write(operations, deadline=deadline)

"""
Global version allocator

Issues the store-wide sequence numbers that order events across aggregates.
The counter lives in the backend as a single record, so every store instance
in every process draws from the same sequence; the backend's atomic increment
guarantees no two callers ever see the same value.

Numbers are handed out before the batch commits. A failed commit therefore
leaves a permanent gap in the sequence. Gaps are allowed, duplicates are not.
"""

from event_ledger.kernel.backend import RecordKey, StorageBackend
from event_ledger.kernel.codec import GLOBAL_VERSION, decode_uint
from event_ledger.kernel.deadline import Deadline, check_deadline
from event_ledger.kernel.errors import SerializationError
from event_ledger.kernel.events import GLOBAL_COUNTER_ID
from event_ledger.kernel.logging import get_logger
from event_ledger.kernel.metrics import global_versions_allocated_total

logger = get_logger(__name__)

COUNTER_KEY = RecordKey(GLOBAL_COUNTER_ID, 0)


class GlobalVersionAllocator:
    """Hands out strictly increasing global versions, one backend round trip each"""

    def __init__(self, backend: StorageBackend) -> None:
        self.backend = backend

    def next(self, *, deadline: Deadline | None = None) -> int:
        """
        Allocate the next global version

        Args:
            deadline: Caller deadline, checked before the request

        Returns:
            The newly issued global version (1 on an empty store)

        Raises:
            DeadlineExceeded: If the deadline expired or was cancelled
            BackendError: If the increment fails
            SerializationError: If the counter holds a non-integer value
        """
        check_deadline(deadline, "allocate_global_version")
        raw = self.backend.increment(COUNTER_KEY, GLOBAL_VERSION, deadline=deadline)
        try:
            value = decode_uint(raw, GLOBAL_VERSION)
        except SerializationError:
            logger.error("Global counter holds an invalid value", value=repr(raw))
            raise
        if value == 0:
            raise SerializationError(GLOBAL_VERSION, raw, "counter did not advance")

        global_versions_allocated_total.inc()
        return value

"""
Kernel - Core event ledger machinery

The kernel holds the pieces the EventStore façade is composed of: the event
model and its record codec, the backend contract, the global version
allocator, the optimistic concurrency pre-check, the batched append writer
and the result iterator.

Fun fact: double-entry bookkeepers never erase a ledger line, they add a
correcting one. An append-only event log is the same idea with a primary key.
"""

from event_ledger.kernel.allocator import GlobalVersionAllocator
from event_ledger.kernel.backend import (
    PutRecord,
    QueryPage,
    QueryRequest,
    RecordKey,
    RequireRecord,
    StorageBackend,
    WriteCondition,
)
from event_ledger.kernel.deadline import Deadline
from event_ledger.kernel.errors import (
    BackendError,
    ConcurrencyError,
    ConditionCheckFailed,
    DeadlineExceeded,
    EventLedgerError,
    IteratorOutOfBounds,
    SerializationError,
)
from event_ledger.kernel.events import GLOBAL_COUNTER_ID, Event, create_event
from event_ledger.kernel.iterator import ResultIterator
from event_ledger.kernel.versions import AggregateVersionReader, ConcurrencyGuard
from event_ledger.kernel.writer import BatchedAppendWriter

__all__ = [
    # Events
    "Event",
    "create_event",
    "GLOBAL_COUNTER_ID",
    # Backend contract
    "StorageBackend",
    "RecordKey",
    "PutRecord",
    "RequireRecord",
    "WriteCondition",
    "QueryRequest",
    "QueryPage",
    # Components
    "GlobalVersionAllocator",
    "AggregateVersionReader",
    "ConcurrencyGuard",
    "BatchedAppendWriter",
    "ResultIterator",
    "Deadline",
    # Errors
    "EventLedgerError",
    "ConcurrencyError",
    "BackendError",
    "ConditionCheckFailed",
    "DeadlineExceeded",
    "SerializationError",
    "IteratorOutOfBounds",
]

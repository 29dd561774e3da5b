"""
Event Ledger - Append-only event store over key-value backends

Per-aggregate optimistic concurrency control plus a store-wide, strictly
increasing global version on every event, built on nothing more than an
atomic counter, conditional writes and an all-or-nothing transaction.
"""

from event_ledger.kernel.deadline import Deadline
from event_ledger.kernel.errors import (
    BackendError,
    ConcurrencyError,
    DeadlineExceeded,
    EventLedgerError,
    IteratorOutOfBounds,
    SerializationError,
)
from event_ledger.kernel.events import Event, create_event
from event_ledger.kernel.iterator import ResultIterator
from event_ledger.store import EventStore

__version__ = "0.1.0"
__all__ = [
    "EventStore",
    "Event",
    "create_event",
    "ResultIterator",
    "Deadline",
    "EventLedgerError",
    "ConcurrencyError",
    "BackendError",
    "DeadlineExceeded",
    "SerializationError",
    "IteratorOutOfBounds",
    "__version__",
]

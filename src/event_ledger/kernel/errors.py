"""
Custom exceptions for the event ledger

A small, well-defined error hierarchy lets callers tell apart the four things
that can go wrong with an append or a read:

- ConcurrencyError: somebody else wrote first (re-read and resubmit)
- BackendError: the storage layer is unhappy (network, throttling, permissions)
- SerializationError: a record could not be encoded or decoded (data corruption)
- IteratorOutOfBounds: a cursor was read outside its valid range

Fun fact: optimistic concurrency control was described by Kung and Robinson
in 1981. Forty-plus years later it is still the cheapest way to share a log.
"""

from typing import Any


class EventLedgerError(Exception):
    """Base exception for all event ledger errors"""

    pass


class ConcurrencyError(EventLedgerError):
    """
    Raised when an append conflicts with the aggregate's stored history

    Either the first version of the batch does not follow the last persisted
    version, or the backend rejected the transaction because one of its guard
    conditions failed. Never retried by the store - the caller must re-read
    the aggregate and resubmit.
    """

    def __init__(
        self,
        aggregate_id: str,
        submitted_version: int,
        actual_version: int | None = None,
    ) -> None:
        self.aggregate_id = aggregate_id
        self.submitted_version = submitted_version
        self.actual_version = actual_version
        if actual_version is None:
            message = (
                f"Aggregate {aggregate_id} rejected append at version "
                f"{submitted_version}: guard condition failed on commit"
            )
        else:
            message = (
                f"Aggregate {aggregate_id} version mismatch: "
                f"expected next version {actual_version + 1}, got {submitted_version}"
            )
        super().__init__(message)


class BackendError(EventLedgerError):
    """
    Raised for any storage-layer failure other than a guard condition

    The native exception is always chained as ``__cause__``.
    """

    def __init__(self, operation: str, message: str, code: str | None = None) -> None:
        self.operation = operation
        self.code = code
        detail = f"{operation} failed: {message}"
        if code:
            detail = f"{detail} ({code})"
        super().__init__(detail)


class ConditionCheckFailed(BackendError):
    """
    Raised by backends when a transaction is cancelled by a guard condition

    The append writer translates this into ConcurrencyError.
    """

    def __init__(self, operation: str = "transact_write", message: str = "") -> None:
        super().__init__(
            operation,
            message or "transaction cancelled by a failed condition",
            code="ConditionalCheckFailed",
        )


class DeadlineExceeded(BackendError):
    """Raised when a caller's deadline expired or was cancelled before a request"""

    def __init__(self, operation: str, cancelled: bool = False) -> None:
        self.cancelled = cancelled
        reason = "operation cancelled by caller" if cancelled else "deadline exceeded"
        super().__init__(operation, reason, code="DeadlineExceeded")


class SerializationError(EventLedgerError):
    """Raised when an event or counter value cannot be encoded or decoded"""

    def __init__(self, attribute: str, value: Any, reason: str) -> None:
        self.attribute = attribute
        self.value = value
        super().__init__(f"Invalid value for attribute {attribute} ({value!r}): {reason}")


class IteratorOutOfBounds(EventLedgerError, IndexError):
    """Raised when value() is read before the first next() or after exhaustion"""

    def __init__(self, position: int, size: int) -> None:
        self.position = position
        self.size = size
        super().__init__(f"Iterator out of bounds: position {position}, {size} loaded")

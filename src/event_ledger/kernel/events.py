"""
Event model for the append-only ledger

An event is a fact about one aggregate. The caller builds it with the
aggregate identity, its position in the aggregate's history and an opaque
payload; the store stamps the global version when the append commits.

Fun fact: the (aggregate, version) pair doubles as the primary key of the
record, so the storage engine itself refuses a second event at a taken slot.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

# Reserved aggregate identity of the global version counter record
GLOBAL_COUNTER_ID = "GlobalVersionCounter"

MAX_UINT64 = 2**64 - 1


class Event(BaseModel):
    """
    A single event in an aggregate's history

    Events are:
    - Append-only (never updated or deleted once committed)
    - Contiguously versioned per aggregate (1, 2, 3, ...)
    - Globally ordered by global_version, assigned at commit time

    global_version is 0 until the event has been saved. After a successful
    save the caller's instance carries the assigned value.
    """

    aggregate_id: str = Field(
        ...,
        min_length=1,
        description="Identity of the owning aggregate (partition key)",
    )

    aggregate_type: str = Field(
        ...,
        description="Kind of aggregate: 'order', 'account', ...",
    )

    version: int = Field(
        ...,
        ge=1,
        le=MAX_UINT64,
        description="1-based position of the event within its aggregate",
    )

    global_version: int = Field(
        default=0,
        ge=0,
        le=MAX_UINT64,
        description="Store-wide sequence number, assigned on commit (0 = unsaved)",
    )

    reason: str = Field(
        default="",
        description="Event type tag: 'OrderPlaced', 'FundsDeposited', ...",
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event was created",
    )

    data: bytes = Field(
        default=b"",
        description="Opaque serialized payload",
    )

    metadata: bytes = Field(
        default=b"",
        description="Opaque serialized metadata, passed through unchanged",
    )

    model_config = {
        "validate_assignment": True,
        "json_schema_extra": {
            "examples": [
                {
                    "aggregate_id": "order-42",
                    "aggregate_type": "order",
                    "version": 1,
                    "global_version": 0,
                    "reason": "OrderPlaced",
                    "timestamp": "2025-01-15T10:30:00Z",
                    "data": "eyJ0b3RhbCI6IDEwMH0=",
                    "metadata": "",
                }
            ]
        },
    }

    @field_validator("aggregate_id")
    @classmethod
    def _reject_reserved_id(cls, value: str) -> str:
        if value == GLOBAL_COUNTER_ID:
            raise ValueError(f"aggregate_id {GLOBAL_COUNTER_ID!r} is reserved")
        return value


def create_event(
    *,
    aggregate_id: str,
    aggregate_type: str,
    version: int,
    data: bytes = b"",
    reason: str = "",
    metadata: bytes = b"",
    timestamp: datetime | None = None,
) -> Event:
    """
    Factory function for building unsaved events with named parameters

    global_version is not accepted here; the store assigns it on save.
    """
    return Event(
        aggregate_id=aggregate_id,
        aggregate_type=aggregate_type,
        version=version,
        data=data,
        reason=reason,
        metadata=metadata,
        timestamp=timestamp or datetime.now(timezone.utc),
    )

"""
Record codec - Event <-> storage record mapping

Backends store records as flat attribute maps. This module owns the attribute
names and the conversion in both directions. Decoding is checked: every
attribute is verified to have the expected type before it is used, so a
corrupt or foreign record surfaces as SerializationError instead of a stray
TypeError deep inside the caller.

Numbers come back from different engines in different shapes (int from
SQLite and the in-memory backend, Decimal from DynamoDB); decode_uint accepts
both and nothing else.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from event_ledger.kernel.errors import SerializationError
from event_ledger.kernel.events import MAX_UINT64, Event

AGGREGATE_ID = "AggregateID"
AGGREGATE_TYPE = "AggregateType"
VERSION = "Version"
GLOBAL_VERSION = "GlobalVersion"
REASON = "Reason"
TIMESTAMP = "Timestamp"
DATA = "Data"
METADATA = "Metadata"

ATTRIBUTES = (
    AGGREGATE_ID,
    VERSION,
    AGGREGATE_TYPE,
    GLOBAL_VERSION,
    REASON,
    TIMESTAMP,
    DATA,
    METADATA,
)


def encode_event(event: Event) -> dict[str, Any]:
    """
    Convert an event into a storage record

    Args:
        event: Event to encode (global_version should already be assigned)

    Returns:
        Attribute map keyed by the names above
    """
    return {
        AGGREGATE_ID: event.aggregate_id,
        VERSION: event.version,
        AGGREGATE_TYPE: event.aggregate_type,
        GLOBAL_VERSION: event.global_version,
        REASON: event.reason,
        TIMESTAMP: event.timestamp.isoformat(),
        DATA: bytes(event.data),
        METADATA: bytes(event.metadata),
    }


def decode_event(record: dict[str, Any]) -> Event:
    """
    Convert a storage record back into an event

    Raises:
        SerializationError: If any attribute is missing or has the wrong type
    """
    values = {
        "aggregate_id": _decode_str(record, AGGREGATE_ID),
        "aggregate_type": _decode_str(record, AGGREGATE_TYPE),
        "version": decode_uint(_require(record, VERSION), VERSION),
        "global_version": decode_uint(_require(record, GLOBAL_VERSION), GLOBAL_VERSION),
        "reason": _decode_str(record, REASON, default=""),
        "timestamp": _decode_timestamp(_require(record, TIMESTAMP)),
        "data": _decode_bytes(record.get(DATA), DATA),
        "metadata": _decode_bytes(record.get(METADATA), METADATA),
    }
    try:
        return Event(**values)
    except ValidationError as e:
        raise SerializationError("record", record, str(e)) from e


def decode_uint(value: Any, attribute: str) -> int:
    """
    Checked decode of an unsigned 64-bit integer attribute

    Raises:
        SerializationError: On a non-numeric type, a fractional value or a
            value outside 0..2**64-1
    """
    # bool is an int subclass; a boolean here is never a version
    if isinstance(value, bool):
        raise SerializationError(attribute, value, "expected an integer, got bool")

    if isinstance(value, int):
        number = value
    elif isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise SerializationError(attribute, value, "expected an integral number")
        number = int(value)
    else:
        raise SerializationError(
            attribute, value, f"expected an integer, got {type(value).__name__}"
        )

    if number < 0 or number > MAX_UINT64:
        raise SerializationError(attribute, value, "outside unsigned 64-bit range")
    return number


def _require(record: dict[str, Any], attribute: str) -> Any:
    if attribute not in record or record[attribute] is None:
        raise SerializationError(attribute, None, "attribute missing from record")
    return record[attribute]


def _decode_str(record: dict[str, Any], attribute: str, default: str | None = None) -> str:
    value = record.get(attribute)
    if value is None and default is not None:
        return default
    if not isinstance(value, str):
        raise SerializationError(
            attribute, value, f"expected a string, got {type(value).__name__}"
        )
    return value


def _decode_bytes(value: Any, attribute: str) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise SerializationError(attribute, value, f"expected bytes, got {type(value).__name__}")


def _decode_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise SerializationError(TIMESTAMP, value, "not an ISO-8601 timestamp") from e
    raise SerializationError(TIMESTAMP, value, f"expected a string, got {type(value).__name__}")

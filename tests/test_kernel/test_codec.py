"""
Tests for the record codec and the Event model
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from event_ledger.kernel.codec import (
    AGGREGATE_ID,
    ATTRIBUTES,
    DATA,
    GLOBAL_VERSION,
    TIMESTAMP,
    VERSION,
    decode_event,
    decode_uint,
    encode_event,
)
from event_ledger.kernel.errors import SerializationError
from event_ledger.kernel.events import GLOBAL_COUNTER_ID, MAX_UINT64, create_event
from tests.helpers import FIXED_TIME, make_event


def test_encode_uses_storage_attribute_names() -> None:
    record = encode_event(make_event("A1", 3, data=b"payload"))

    assert set(record) == set(ATTRIBUTES)
    assert record[AGGREGATE_ID] == "A1"
    assert record[VERSION] == 3
    assert record[DATA] == b"payload"
    assert record[TIMESTAMP] == FIXED_TIME.isoformat()


def test_decode_restores_encoded_event() -> None:
    event = make_event("A1", 2)
    event.global_version = 17

    assert decode_event(encode_event(event)) == event


def test_decode_accepts_dynamodb_numbers() -> None:
    """DynamoDB returns numbers as Decimal"""
    record = encode_event(make_event("A1", 2))
    record[VERSION] = Decimal("2")
    record[GLOBAL_VERSION] = Decimal("40")

    event = decode_event(record)

    assert event.version == 2
    assert event.global_version == 40


def test_decode_missing_attribute() -> None:
    record = encode_event(make_event())
    del record[VERSION]

    with pytest.raises(SerializationError) as exc_info:
        decode_event(record)
    assert exc_info.value.attribute == VERSION


def test_decode_wrong_type() -> None:
    record = encode_event(make_event())
    record[AGGREGATE_ID] = 42

    with pytest.raises(SerializationError):
        decode_event(record)


def test_decode_bad_timestamp() -> None:
    record = encode_event(make_event())
    record[TIMESTAMP] = "yesterday"

    with pytest.raises(SerializationError):
        decode_event(record)


def test_decode_missing_payload_is_empty() -> None:
    record = encode_event(make_event())
    del record[DATA]

    assert decode_event(record).data == b""


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, 0),
        (7, 7),
        (Decimal("7"), 7),
        (MAX_UINT64, MAX_UINT64),
    ],
)
def test_decode_uint_valid(value, expected) -> None:
    assert decode_uint(value, VERSION) == expected


@pytest.mark.parametrize(
    "value",
    [
        True,
        -1,
        MAX_UINT64 + 1,
        Decimal("1.5"),
        Decimal("NaN"),
        "7",
        7.0,
        None,
    ],
)
def test_decode_uint_rejects(value) -> None:
    with pytest.raises(SerializationError):
        decode_uint(value, VERSION)


def test_event_rejects_reserved_aggregate_id() -> None:
    with pytest.raises(ValidationError):
        make_event(GLOBAL_COUNTER_ID, 1)


def test_event_rejects_version_zero() -> None:
    with pytest.raises(ValidationError):
        make_event("A1", 0)


def test_event_rejects_empty_aggregate_id() -> None:
    with pytest.raises(ValidationError):
        make_event("", 1)


def test_create_event_defaults() -> None:
    event = create_event(aggregate_id="A1", aggregate_type="order", version=1)

    assert event.global_version == 0
    assert event.data == b""
    assert event.metadata == b""
    assert event.timestamp.tzinfo is not None


def test_global_version_assignment_is_validated() -> None:
    event = make_event()

    with pytest.raises(ValidationError):
        event.global_version = -1

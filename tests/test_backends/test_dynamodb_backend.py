"""
DynamoDB backend tests against a stubbed boto3 client

botocore's Stubber checks every request against the service model, so these
tests pin down the exact request shapes the backend sends.
"""

from decimal import Decimal

import boto3
import pytest
from botocore.stub import ANY, Stubber

from event_ledger.backends.dynamodb import DynamoDBBackend
from event_ledger.kernel.allocator import COUNTER_KEY
from event_ledger.kernel.backend import PutRecord, QueryRequest, RecordKey, RequireRecord
from event_ledger.kernel.codec import GLOBAL_VERSION, encode_event
from event_ledger.kernel.errors import (
    BackendError,
    ConcurrencyError,
    ConditionCheckFailed,
)
from event_ledger.store import EventStore
from tests.helpers import FIXED_TIME, make_event

TABLE = "EventStoreTable"


@pytest.fixture
def client():
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def stubber(client):
    with Stubber(client) as stub:
        yield stub
        stub.assert_no_pending_responses()


@pytest.fixture
def backend(client, stubber) -> DynamoDBBackend:
    return DynamoDBBackend(TABLE, client)


def item(aggregate_id: str, version: int, global_version: int = 0) -> dict:
    return {
        "AggregateID": {"S": aggregate_id},
        "Version": {"N": str(version)},
        "AggregateType": {"S": "order"},
        "GlobalVersion": {"N": str(global_version)},
        "Reason": {"S": "Changed"},
        "Timestamp": {"S": FIXED_TIME.isoformat()},
        "Data": {"B": b"x"},
        "Metadata": {"B": b""},
    }


def test_increment_request(backend, stubber) -> None:
    stubber.add_response(
        "update_item",
        {"Attributes": {"GlobalVersion": {"N": "42"}}},
        expected_params={
            "TableName": TABLE,
            "Key": {
                "AggregateID": {"S": "GlobalVersionCounter"},
                "Version": {"N": "0"},
            },
            "UpdateExpression": "SET #attr = if_not_exists(#attr, :start) + :inc",
            "ExpressionAttributeNames": {"#attr": "GlobalVersion"},
            "ExpressionAttributeValues": {":inc": {"N": "1"}, ":start": {"N": "0"}},
            "ReturnValues": "UPDATED_NEW",
        },
    )

    assert backend.increment(COUNTER_KEY, GLOBAL_VERSION) == Decimal("42")


def test_query_request_and_continuation(backend, stubber) -> None:
    stubber.add_response(
        "query",
        {
            "Items": [item("A1", 3, 9)],
            "Count": 1,
            "ScannedCount": 1,
            "LastEvaluatedKey": {"AggregateID": {"S": "A1"}, "Version": {"N": "3"}},
        },
        expected_params={
            "TableName": TABLE,
            "KeyConditionExpression": "#id = :id AND #v > :version",
            "ExpressionAttributeNames": {"#id": "AggregateID", "#v": "Version"},
            "ExpressionAttributeValues": {":id": {"S": "A1"}, ":version": {"N": "2"}},
            "ScanIndexForward": True,
            "Limit": 1,
            "ExclusiveStartKey": {"AggregateID": {"S": "A1"}, "Version": {"N": "2"}},
        },
    )

    page = backend.query(
        QueryRequest(
            aggregate_id="A1",
            after_version=2,
            limit=1,
            start_key=RecordKey("A1", 2),
        )
    )

    assert page.last_key == RecordKey("A1", 3)
    (record,) = page.records
    assert record["Version"] == Decimal("3")
    assert record["Data"] == b"x"


def test_last_version_query(backend, stubber) -> None:
    stubber.add_response(
        "query",
        {"Items": [], "Count": 0, "ScannedCount": 0},
        expected_params={
            "TableName": TABLE,
            "KeyConditionExpression": "#id = :id",
            "ExpressionAttributeNames": {"#id": "AggregateID"},
            "ExpressionAttributeValues": {":id": {"S": "A1"}},
            "ScanIndexForward": False,
            "Limit": 1,
        },
    )

    page = backend.query(QueryRequest(aggregate_id="A1", ascending=False, limit=1))

    assert page.records == []
    assert page.last_key is None


def test_transact_write_request(backend, stubber) -> None:
    event = make_event("A1", 2)
    stubber.add_response(
        "transact_write_items",
        {},
        expected_params={
            "TransactItems": [
                {
                    "ConditionCheck": {
                        "TableName": TABLE,
                        "Key": {"AggregateID": {"S": "A1"}, "Version": {"N": "1"}},
                        "ConditionExpression": "attribute_exists(#id)",
                        "ExpressionAttributeNames": {"#id": "AggregateID"},
                    }
                },
                {
                    "Put": {
                        "TableName": TABLE,
                        "Item": item("A1", 2),
                        "ConditionExpression": "attribute_not_exists(#id)",
                        "ExpressionAttributeNames": {"#id": "AggregateID"},
                    }
                },
            ]
        },
    )

    backend.transact_write([RequireRecord(RecordKey("A1", 1)), PutRecord(encode_event(event))])


def test_cancelled_transaction_is_condition_failure(backend, stubber) -> None:
    stubber.add_client_error(
        "transact_write_items",
        service_error_code="TransactionCanceledException",
        service_message="Transaction cancelled",
        modeled_fields={
            "CancellationReasons": [
                {"Code": "None"},
                {"Code": "ConditionalCheckFailed", "Message": "The conditional request failed"},
            ]
        },
    )

    with pytest.raises(ConditionCheckFailed):
        backend.transact_write([PutRecord(encode_event(make_event("A1", 1)))])


def test_cancelled_transaction_without_condition_failure(backend, stubber) -> None:
    stubber.add_client_error(
        "transact_write_items",
        service_error_code="TransactionCanceledException",
        service_message="Transaction cancelled",
        modeled_fields={"CancellationReasons": [{"Code": "TransactionConflict"}]},
    )

    with pytest.raises(BackendError) as exc_info:
        backend.transact_write([PutRecord(encode_event(make_event("A1", 1)))])

    assert not isinstance(exc_info.value, ConditionCheckFailed)
    assert exc_info.value.code == "TransactionCanceledException"


def test_client_errors_become_backend_errors(backend, stubber) -> None:
    stubber.add_client_error(
        "update_item",
        service_error_code="ProvisionedThroughputExceededException",
        service_message="Slow down",
    )

    with pytest.raises(BackendError) as exc_info:
        backend.increment(COUNTER_KEY, GLOBAL_VERSION)

    assert exc_info.value.operation == "increment"
    assert exc_info.value.code == "ProvisionedThroughputExceededException"


def test_store_save_on_dynamodb(backend, stubber) -> None:
    """A save is one query, one update per event and one transaction"""
    stubber.add_response(
        "query",
        {"Items": [item("A1", 1, 1)], "Count": 1, "ScannedCount": 1},
        expected_params=None,
    )
    stubber.add_response(
        "update_item", {"Attributes": {"GlobalVersion": {"N": "2"}}}, expected_params=None
    )
    stubber.add_response(
        "transact_write_items", {}, expected_params={"TransactItems": ANY}
    )

    event = make_event("A1", 2)
    EventStore(backend).save([event])

    assert event.global_version == 2


def test_store_translates_cancelled_commit(backend, stubber) -> None:
    stubber.add_response(
        "query", {"Items": [], "Count": 0, "ScannedCount": 0}, expected_params=None
    )
    stubber.add_response(
        "update_item", {"Attributes": {"GlobalVersion": {"N": "5"}}}, expected_params=None
    )
    stubber.add_client_error(
        "transact_write_items",
        service_error_code="TransactionCanceledException",
        modeled_fields={"CancellationReasons": [{"Code": "ConditionalCheckFailed"}]},
    )

    event = make_event("A1", 1)
    with pytest.raises(ConcurrencyError):
        EventStore(backend).save([event])

    assert event.global_version == 0

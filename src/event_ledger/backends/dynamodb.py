"""
DynamoDB storage backend (boto3)

Table layout (provisioned outside this library):
- Partition key: AggregateID (S)
- Sort key: Version (N)
- Global counter item: AggregateID="GlobalVersionCounter", Version=0,
  attribute GlobalVersion (N)

Primitives used:
- UpdateItem with ``if_not_exists(GlobalVersion, :start) + :inc`` for the
  atomic counter
- Query with KeyConditionExpression / ScanIndexForward / Limit /
  ExclusiveStartKey for range reads
- TransactWriteItems with Put + ``attribute_not_exists`` and ConditionCheck +
  ``attribute_exists`` for appends

botocore's own retry policy applies to throttling and transient network
errors; anything it gives up on is surfaced as BackendError.
"""

from collections.abc import Sequence
from typing import Any

import boto3
from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from event_ledger.kernel.backend import (
    PutRecord,
    QueryPage,
    QueryRequest,
    Record,
    RecordKey,
    RequireRecord,
    WriteOperation,
)
from event_ledger.kernel.codec import AGGREGATE_ID, VERSION, decode_uint
from event_ledger.kernel.deadline import Deadline, check_deadline
from event_ledger.kernel.errors import BackendError, ConditionCheckFailed
from event_ledger.kernel.logging import get_logger

logger = get_logger(__name__)


class DynamoDBBackend:
    """
    DynamoDB implementation of StorageBackend

    Args:
        table_name: Name of the events table
        client: Preconfigured ``boto3.client("dynamodb")``; built from the
            remaining arguments when omitted
        region_name: AWS region
        endpoint_url: Endpoint override (dynamodb-local, LocalStack)
        request_timeout: Connect and read timeout for a single request
    """

    max_transaction_items = 100

    def __init__(
        self,
        table_name: str,
        client: Any = None,
        *,
        region_name: str = "us-east-1",
        endpoint_url: str | None = None,
        request_timeout: float = 5.0,
    ) -> None:
        self.table_name = table_name
        self.client = client or boto3.client(
            "dynamodb",
            region_name=region_name,
            endpoint_url=endpoint_url,
            config=Config(
                connect_timeout=request_timeout,
                read_timeout=request_timeout,
                retries={"mode": "standard"},
            ),
        )
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    # ------------------------------------------------------------------
    # StorageBackend interface
    # ------------------------------------------------------------------

    def increment(
        self,
        key: RecordKey,
        attribute: str,
        *,
        deadline: Deadline | None = None,
    ) -> Any:
        check_deadline(deadline, "increment")
        response = self._call(
            "increment",
            self.client.update_item,
            TableName=self.table_name,
            Key=self._serialize_key(key),
            UpdateExpression="SET #attr = if_not_exists(#attr, :start) + :inc",
            ExpressionAttributeNames={"#attr": attribute},
            ExpressionAttributeValues={
                ":inc": {"N": "1"},
                ":start": {"N": "0"},
            },
            ReturnValues="UPDATED_NEW",
        )
        attributes = self._deserialize(response.get("Attributes", {}))
        return attributes.get(attribute)

    def query(
        self,
        request: QueryRequest,
        *,
        deadline: Deadline | None = None,
    ) -> QueryPage:
        check_deadline(deadline, "query")
        key_condition = "#id = :id"
        values: dict[str, Any] = {":id": {"S": request.aggregate_id}}
        names = {"#id": AGGREGATE_ID}
        if request.after_version is not None:
            key_condition += " AND #v > :version"
            values[":version"] = {"N": str(request.after_version)}
            names["#v"] = VERSION

        params: dict[str, Any] = {
            "TableName": self.table_name,
            "KeyConditionExpression": key_condition,
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ScanIndexForward": request.ascending,
        }
        if request.limit is not None:
            params["Limit"] = request.limit
        if request.start_key is not None:
            params["ExclusiveStartKey"] = self._serialize_key(request.start_key)

        response = self._call("query", self.client.query, **params)

        last_key = None
        if "LastEvaluatedKey" in response:
            raw = self._deserialize(response["LastEvaluatedKey"])
            last_key = RecordKey(raw[AGGREGATE_ID], decode_uint(raw[VERSION], VERSION))

        return QueryPage(
            records=[self._deserialize(item) for item in response.get("Items", [])],
            last_key=last_key,
        )

    def transact_write(
        self,
        operations: Sequence[WriteOperation],
        *,
        deadline: Deadline | None = None,
    ) -> None:
        check_deadline(deadline, "transact_write")
        items = [self._transact_item(operation) for operation in operations]
        try:
            self.client.transact_write_items(TransactItems=items)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            if code == "TransactionCanceledException" and self._condition_failed(e):
                raise ConditionCheckFailed(
                    message=e.response.get("Error", {}).get("Message", "")
                ) from e
            raise BackendError("transact_write", str(e), code=code) from e
        except BotoCoreError as e:
            raise BackendError("transact_write", str(e)) from e

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _transact_item(self, operation: WriteOperation) -> dict[str, Any]:
        if isinstance(operation, PutRecord):
            return {
                "Put": {
                    "TableName": self.table_name,
                    "Item": self._serialize(operation.record),
                    "ConditionExpression": "attribute_not_exists(#id)",
                    "ExpressionAttributeNames": {"#id": AGGREGATE_ID},
                }
            }
        if isinstance(operation, RequireRecord):
            return {
                "ConditionCheck": {
                    "TableName": self.table_name,
                    "Key": self._serialize_key(operation.key),
                    "ConditionExpression": "attribute_exists(#id)",
                    "ExpressionAttributeNames": {"#id": AGGREGATE_ID},
                }
            }
        raise TypeError(f"Unsupported write operation: {operation!r}")

    @staticmethod
    def _condition_failed(error: ClientError) -> bool:
        reasons = error.response.get("CancellationReasons", [])
        return any(reason.get("Code") == "ConditionalCheckFailed" for reason in reasons)

    def _call(self, operation: str, method: Any, **params: Any) -> dict[str, Any]:
        try:
            return method(**params)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            logger.warning("DynamoDB request failed", operation=operation, code=code)
            raise BackendError(operation, str(e), code=code) from e
        except BotoCoreError as e:
            logger.warning("DynamoDB request failed", operation=operation, error=str(e))
            raise BackendError(operation, str(e)) from e

    def _serialize_key(self, key: RecordKey) -> dict[str, Any]:
        return {
            AGGREGATE_ID: {"S": key.aggregate_id},
            VERSION: {"N": str(key.version)},
        }

    def _serialize(self, record: Record) -> dict[str, Any]:
        return {name: self._serializer.serialize(value) for name, value in record.items()}

    def _deserialize(self, item: dict[str, Any]) -> Record:
        record = {}
        for name, value in item.items():
            decoded = self._deserializer.deserialize(value)
            record[name] = decoded.value if isinstance(decoded, Binary) else decoded
        return record

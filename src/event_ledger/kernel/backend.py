"""
Storage backend contract

The store never talks to a database directly. It consumes four primitives,
which every backend adapter provides:

- atomic increment-with-default on a single keyed record
- conditional single-record writes (insert-only, or "must exist" checks)
- an all-or-nothing transaction over those writes that reports a failed
  condition distinctly (ConditionCheckFailed) from any other fault
- a range query by aggregate id with an optional version lower bound,
  ascending or descending order, a result limit and a continuation key

Records are plain dicts keyed by attribute name (see kernel.codec).
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, Union

from event_ledger.kernel.codec import AGGREGATE_ID, VERSION
from event_ledger.kernel.deadline import Deadline

Record = dict[str, Any]


@dataclass(frozen=True)
class RecordKey:
    """Primary identity of a record"""

    aggregate_id: str
    version: int


class WriteCondition(str, Enum):
    """Guard attached to a PutRecord"""

    NOT_EXISTS = "attribute_not_exists"


@dataclass(frozen=True)
class PutRecord:
    """Conditional insert of a full record"""

    record: Record
    condition: WriteCondition = WriteCondition.NOT_EXISTS

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.record[AGGREGATE_ID], int(self.record[VERSION]))


@dataclass(frozen=True)
class RequireRecord:
    """Condition check without a write: the keyed record must already exist"""

    key: RecordKey


WriteOperation = Union[PutRecord, RequireRecord]


@dataclass(frozen=True)
class QueryRequest:
    """Range query over one aggregate's records"""

    aggregate_id: str
    after_version: int | None = None
    ascending: bool = True
    limit: int | None = None
    start_key: RecordKey | None = None


@dataclass
class QueryPage:
    """One page of query results; last_key is set when more data may follow"""

    records: list[Record] = field(default_factory=list)
    last_key: RecordKey | None = None


class StorageBackend(Protocol):
    """Capabilities the event store consumes from a storage engine"""

    max_transaction_items: int

    def increment(
        self,
        key: RecordKey,
        attribute: str,
        *,
        deadline: Deadline | None = None,
    ) -> Any:
        """
        Atomically add 1 to ``attribute`` of the keyed record

        A missing record or attribute starts from 0. Returns the new raw value
        exactly as the engine reports it; callers decode it.
        """
        ...

    def query(
        self,
        request: QueryRequest,
        *,
        deadline: Deadline | None = None,
    ) -> QueryPage:
        """Return one page of records matching the request, ordered by version"""
        ...

    def transact_write(
        self,
        operations: Sequence[WriteOperation],
        *,
        deadline: Deadline | None = None,
    ) -> None:
        """
        Apply all operations atomically, or none

        Raises:
            ConditionCheckFailed: If any operation's guard condition fails
            BackendError: On any other failure
        """
        ...

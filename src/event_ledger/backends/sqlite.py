"""
SQLite storage backend - the ledger on a single file

The events table is keyed by (aggregate_id, version), exactly like the
DynamoDB table, and the global counter lives in the same table at the
reserved key (GlobalVersionCounter, 0). Every write runs inside
BEGIN IMMEDIATE, so a transaction holds the database write lock from its
first statement to COMMIT and concurrent processes serialize cleanly.

Schema:
- events table: one row per event plus the counter row
- Primary key: (aggregate_id, version) - doubles as the insert-only guard
- Index: global_version, for cross-aggregate replay

SQLite stores INTEGER as signed 64-bit, so versions above 2**63-1 are not
representable here; requests that carry one fail with BackendError.
"""

import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from event_ledger.kernel.backend import (
    PutRecord,
    QueryPage,
    QueryRequest,
    Record,
    RecordKey,
    RequireRecord,
    WriteCondition,
    WriteOperation,
)
from event_ledger.kernel.codec import (
    AGGREGATE_ID,
    AGGREGATE_TYPE,
    DATA,
    GLOBAL_VERSION,
    METADATA,
    REASON,
    TIMESTAMP,
    VERSION,
)
from event_ledger.kernel.deadline import Deadline, check_deadline, remaining_or
from event_ledger.kernel.errors import BackendError, ConditionCheckFailed
from event_ledger.kernel.retry import retry_on_sqlite_lock

# attribute name -> column name
COLUMNS = {
    AGGREGATE_ID: "aggregate_id",
    VERSION: "version",
    AGGREGATE_TYPE: "aggregate_type",
    GLOBAL_VERSION: "global_version",
    REASON: "reason",
    TIMESTAMP: "timestamp",
    DATA: "data",
    METADATA: "metadata",
}

_SELECT = "SELECT " + ", ".join(COLUMNS.values()) + " FROM events"
_INSERT = (
    "INSERT INTO events ("
    + ", ".join(COLUMNS.values())
    + ") VALUES ("
    + ", ".join("?" for _ in COLUMNS)
    + ")"
)


class SQLiteBackend:
    """
    SQLite implementation of StorageBackend

    Args:
        db_path: Path to the SQLite database file (created if missing)
        request_timeout: Busy timeout in seconds for a single request; a
            caller deadline with less time left shortens it
    """

    max_transaction_items = 100

    def __init__(self, db_path: str | Path, request_timeout: float = 5.0) -> None:
        self.db_path = Path(db_path)
        self.request_timeout = request_timeout
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create the events table and index if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    aggregate_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    aggregate_type TEXT,
                    global_version INTEGER,
                    reason TEXT,
                    timestamp TEXT,
                    data BLOB,
                    metadata BLOB,

                    PRIMARY KEY (aggregate_id, version)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_global_version "
                "ON events(global_version)"
            )

    @contextmanager
    def _connect(self, deadline: Deadline | None = None) -> Iterator[sqlite3.Connection]:
        """
        Open a connection in autocommit mode

        Transactions are explicit (BEGIN IMMEDIATE / COMMIT) so the write
        lock is taken up front instead of on the first write statement.
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=remaining_or(deadline, self.request_timeout),
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

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
        if attribute != GLOBAL_VERSION:
            raise ValueError(f"SQLite backend cannot increment attribute {attribute!r}")
        check_deadline(deadline, "increment")
        try:
            return self._increment(key, deadline)
        except (sqlite3.Error, OverflowError) as e:
            raise BackendError("increment", str(e)) from e

    def query(
        self,
        request: QueryRequest,
        *,
        deadline: Deadline | None = None,
    ) -> QueryPage:
        check_deadline(deadline, "query")
        try:
            return self._query(request, deadline)
        except (sqlite3.Error, OverflowError) as e:
            raise BackendError("query", str(e)) from e

    def transact_write(
        self,
        operations: Sequence[WriteOperation],
        *,
        deadline: Deadline | None = None,
    ) -> None:
        if len(operations) > self.max_transaction_items:
            raise BackendError(
                "transact_write",
                f"{len(operations)} items exceed the limit of {self.max_transaction_items}",
            )
        check_deadline(deadline, "transact_write")
        try:
            self._transact_write(operations, deadline)
        except (sqlite3.Error, OverflowError) as e:
            raise BackendError("transact_write", str(e)) from e

    # ------------------------------------------------------------------
    # Implementation (retried on lock contention)
    # ------------------------------------------------------------------

    @retry_on_sqlite_lock()
    def _increment(self, key: RecordKey, deadline: Deadline | None) -> Any:
        with self._connect(deadline) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                rows = conn.execute(
                    """
                    INSERT INTO events (aggregate_id, version, global_version)
                    VALUES (?, ?, 1)
                    ON CONFLICT (aggregate_id, version)
                    DO UPDATE SET global_version = COALESCE(global_version, 0) + 1
                    RETURNING global_version
                    """,
                    (key.aggregate_id, key.version),
                ).fetchall()
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        return rows[0]["global_version"]

    @retry_on_sqlite_lock()
    def _query(self, request: QueryRequest, deadline: Deadline | None) -> QueryPage:
        conditions = ["aggregate_id = ?"]
        params: list[Any] = [request.aggregate_id]

        if request.after_version is not None:
            conditions.append("version > ?")
            params.append(request.after_version)

        if request.start_key is not None:
            conditions.append("version > ?" if request.ascending else "version < ?")
            params.append(request.start_key.version)

        order = "ASC" if request.ascending else "DESC"
        query = f"{_SELECT} WHERE {' AND '.join(conditions)} ORDER BY version {order}"

        if request.limit is not None:
            # One extra row tells us whether another page follows
            query += " LIMIT ?"
            params.append(request.limit + 1)

        with self._connect(deadline) as conn:
            rows = conn.execute(query, params).fetchall()

        last_key = None
        if request.limit is not None and len(rows) > request.limit:
            rows = rows[: request.limit]
            last_key = RecordKey(request.aggregate_id, rows[-1]["version"])

        return QueryPage(records=[self._row_to_record(row) for row in rows], last_key=last_key)

    @retry_on_sqlite_lock()
    def _transact_write(
        self, operations: Sequence[WriteOperation], deadline: Deadline | None
    ) -> None:
        with self._connect(deadline) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                for operation in operations:
                    self._apply(conn, operation)
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def _apply(self, conn: sqlite3.Connection, operation: WriteOperation) -> None:
        if isinstance(operation, RequireRecord):
            row = conn.execute(
                "SELECT 1 FROM events WHERE aggregate_id = ? AND version = ?",
                (operation.key.aggregate_id, operation.key.version),
            ).fetchone()
            if row is None:
                raise ConditionCheckFailed(
                    message=f"required record {operation.key} does not exist"
                )
        elif isinstance(operation, PutRecord):
            values = tuple(operation.record.get(attribute) for attribute in COLUMNS)
            try:
                conn.execute(_INSERT, values)
            except sqlite3.IntegrityError as e:
                if operation.condition is WriteCondition.NOT_EXISTS and "UNIQUE" in str(e):
                    raise ConditionCheckFailed(
                        message=f"record {operation.key} already exists"
                    ) from e
                raise
        else:
            raise TypeError(f"Unsupported write operation: {operation!r}")

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        """Convert SQLite row to an attribute map, dropping NULL columns"""
        return {
            attribute: row[column]
            for attribute, column in COLUMNS.items()
            if row[column] is not None
        }

    def count_events(self) -> int:
        """Number of event rows, the counter row excluded"""
        with self._connect() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM events WHERE version > 0")
            return cursor.fetchone()[0]

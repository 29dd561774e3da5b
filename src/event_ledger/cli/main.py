"""
Event Ledger CLI

Command-line interface for inspecting and appending to a SQLite-backed ledger.

Usage:
    event-ledger init --db ledger.db
    event-ledger append --db ledger.db --aggregate-id order-42 --aggregate-type order \\
        --version 1 --reason OrderPlaced --data '{"total": 100}'
    event-ledger history --db ledger.db --aggregate-id order-42
    event-ledger last-version --db ledger.db --aggregate-id order-42
"""

from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from event_ledger.backends import SQLiteBackend
from event_ledger.kernel.config import LedgerSettings
from event_ledger.kernel.deadline import Deadline
from event_ledger.kernel.errors import ConcurrencyError, EventLedgerError
from event_ledger.kernel.events import create_event
from event_ledger.kernel.logging import configure_logging
from event_ledger.store import EventStore

app = typer.Typer(
    name="event-ledger",
    help="Event Ledger - append-only event store with global ordering",
    add_completion=False,
)

# Exit code for an append rejected by optimistic concurrency
EXIT_CONFLICT = 2


@app.callback()
def main() -> None:
    """Configure logging from EVENT_LEDGER_* settings before any command runs"""
    settings = LedgerSettings.from_env()
    configure_logging(json_output=settings.json_logs, log_level=settings.log_level)


def resolve_db(db_path: Optional[Path], settings: LedgerSettings) -> Path:
    """--db wins; otherwise EVENT_LEDGER_SQLITE_PATH (or its default)"""
    return db_path or settings.sqlite_path


def get_store(db_path: Optional[Path] = None) -> EventStore:
    """Open the store, refusing to create a database implicitly"""
    settings = LedgerSettings.from_env()
    db = resolve_db(db_path, settings)
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'event-ledger init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return EventStore(
        SQLiteBackend(db, request_timeout=settings.request_timeout_seconds),
        page_size=settings.page_size,
    )


@app.command()
def init(
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Initialize a new ledger database"""
    settings = LedgerSettings.from_env()
    db = resolve_db(db, settings)
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    SQLiteBackend(db, request_timeout=settings.request_timeout_seconds)
    typer.echo(f"✓ Initialized ledger database: {db}")


@app.command()
def append(
    aggregate_id: Annotated[str, typer.Option("--aggregate-id", help="Aggregate identity")],
    aggregate_type: Annotated[str, typer.Option("--aggregate-type", help="Aggregate kind")],
    version: Annotated[int, typer.Option("--version", min=1, help="Version of the new event")],
    reason: Annotated[str, typer.Option("--reason", help="Event type tag")] = "",
    data: Annotated[str, typer.Option("--data", help="Payload (stored as UTF-8)")] = "",
    timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Give up after this many seconds"),
    ] = None,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Append a single event to an aggregate"""
    store = get_store(db)
    event = create_event(
        aggregate_id=aggregate_id,
        aggregate_type=aggregate_type,
        version=version,
        reason=reason,
        data=data.encode("utf-8"),
    )

    try:
        store.save([event], deadline=Deadline(timeout))
    except ConcurrencyError as e:
        typer.echo(f"Conflict: {e}", err=True)
        typer.echo("Re-read the aggregate and retry with the next version", err=True)
        raise typer.Exit(EXIT_CONFLICT)
    except EventLedgerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ Appended {aggregate_id} v{event.version}")
    typer.echo(f"  Global version: {event.global_version}")


@app.command()
def history(
    aggregate_id: Annotated[str, typer.Option("--aggregate-id", help="Aggregate identity")],
    after: Annotated[
        int,
        typer.Option("--after", min=0, help="Only events with a higher version"),
    ] = 0,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Print an aggregate's events in version order"""
    store = get_store(db)

    count = 0
    with store.get(aggregate_id, "", after) as events:
        for event in events:
            count += 1
            payload = event.data.decode("utf-8", errors="replace")
            typer.echo(
                f"  v{event.version} (global {event.global_version}) "
                f"{event.reason or '-'}: {payload}"
            )

    if count == 0:
        typer.echo(f"No events for {aggregate_id}")


@app.command("last-version")
def last_version(
    aggregate_id: Annotated[str, typer.Option("--aggregate-id", help="Aggregate identity")],
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Print the version of an aggregate's latest event (0 if none)"""
    store = get_store(db)
    typer.echo(str(store.last_version(aggregate_id)))


if __name__ == "__main__":
    app()

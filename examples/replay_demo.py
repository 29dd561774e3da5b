#!/usr/bin/env python3
"""
Event Replay Demonstration - Rebuilding State from the Ledger

This example shows the two halves of the event store contract:

1. Writers append with optimistic concurrency: each append names the version
   it expects to create, and a stale writer gets ConcurrencyError instead of
   silently overwriting history.
2. Readers rebuild state by replaying an aggregate's events in version order.

Scenario:
- Open a bank account and post a few deposits and withdrawals
- Simulate two tellers racing on the same account; one is rejected
- The rejected teller re-reads the account and retries
- Rebuild the balance from the ledger and show the global ordering

Run:
    python examples/replay_demo.py
"""

import json
import tempfile
from pathlib import Path

from event_ledger import ConcurrencyError, EventStore, create_event
from event_ledger.backends import SQLiteBackend


def print_section(title: str) -> None:
    """Print section header"""
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}\n")


def post(store: EventStore, account_id: str, version: int, reason: str, amount: int) -> int:
    """Append one account event and return its global version"""
    event = create_event(
        aggregate_id=account_id,
        aggregate_type="account",
        version=version,
        reason=reason,
        data=json.dumps({"amount": amount}).encode(),
    )
    store.save([event])
    return event.global_version


def replay_balance(store: EventStore, account_id: str) -> tuple[int, int]:
    """Fold the account's events into (balance, version)"""
    balance = 0
    version = 0
    with store.get(account_id, "account", 0) as events:
        for event in events:
            amount = json.loads(event.data)["amount"]
            balance += -amount if event.reason == "Withdrawn" else amount
            version = event.version
    return balance, version


def main() -> None:
    """Run replay demonstration"""

    print_section("Event Replay Demonstration")

    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "ledger.db"
        store = EventStore(SQLiteBackend(db_path))
        print(f"Database: {db_path}")

        # Phase 1: build some history
        print_section("Phase 1: Post Transactions")

        postings = [
            ("Opened", 0),
            ("Deposited", 500),
            ("Withdrawn", 120),
            ("Deposited", 75),
        ]
        for version, (reason, amount) in enumerate(postings, start=1):
            global_version = post(store, "acct-1", version, reason, amount)
            print(f"✓ acct-1 v{version} {reason:<10} {amount:>5}  (global {global_version})")

        # A second account interleaves with the first in the global order
        post(store, "acct-2", 1, "Opened", 0)
        post(store, "acct-2", 2, "Deposited", 1000)
        print("✓ acct-2 opened with 1000")

        # Phase 2: two tellers race on acct-1
        print_section("Phase 2: Concurrent Tellers")

        _, seen_by_both = replay_balance(store, "acct-1")
        print(f"Both tellers read acct-1 at version {seen_by_both}")

        post(store, "acct-1", seen_by_both + 1, "Deposited", 50)
        print(f"✓ Teller A appended v{seen_by_both + 1}")

        try:
            post(store, "acct-1", seen_by_both + 1, "Withdrawn", 300)
        except ConcurrencyError as e:
            print(f"✗ Teller B rejected: {e}")
            _, current = replay_balance(store, "acct-1")
            post(store, "acct-1", current + 1, "Withdrawn", 300)
            print(f"✓ Teller B re-read (v{current}) and appended v{current + 1}")

        # Phase 3: rebuild
        print_section("Phase 3: Replay")

        for account_id in ("acct-1", "acct-2"):
            balance, version = replay_balance(store, account_id)
            print(f"{account_id}: balance {balance} at version {version}")

        print("\nacct-1 events after version 4:")
        with store.get("acct-1", "account", 4) as events:
            for event in events:
                print(f"  v{event.version} (global {event.global_version}) {event.reason}")

        print_section("Summary")
        print("✓ Stale writers are rejected, never merged")
        print("✓ Replay gives the same state every time")
        print("✓ Global versions order events across accounts")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Performance Benchmark for the Event Ledger

Measures the cost of the append path (version read + one allocation per
event + one transaction) and of reading history back through the iterator.

- Single-event appends: >200 appends/sec on SQLite
- Batched appends: >1000 events/sec on SQLite
- History reads: <1sec for 10K events

Run:
    python scripts/performance_benchmark.py
"""

import tempfile
import time
from pathlib import Path

from event_ledger import EventStore, create_event
from event_ledger.backends import InMemoryBackend, SQLiteBackend


def make_events(aggregate_id: str, first_version: int, count: int) -> list:
    return [
        create_event(
            aggregate_id=aggregate_id,
            aggregate_type="benchmark",
            version=first_version + i,
            reason="Tick",
            data=b'{"n": 1}',
        )
        for i in range(count)
    ]


def benchmark_single_appends(store: EventStore, label: str, count: int = 1000) -> dict:
    """One event per save, spread over 10 aggregates"""
    print(f"\n=== Benchmark: Single Appends ({label}) ===")

    start_time = time.perf_counter()
    for i in range(count):
        aggregate_id = f"single-{i % 10}"
        store.save(make_events(aggregate_id, i // 10 + 1, 1))
    elapsed = time.perf_counter() - start_time

    rate = count / elapsed if elapsed > 0 else 0
    print(f"  Appends: {count}")
    print(f"  Time elapsed: {elapsed:.2f}s")
    print(f"  Appends/sec: {rate:.1f}")
    print("  Target: >200 appends/sec")
    print(f"  Status: {'✓ PASS' if rate > 200 else '✗ FAIL'}")

    return {"test": f"single_appends_{label}", "elapsed_sec": elapsed, "rate": rate, "pass": rate > 200}


def benchmark_batched_appends(store: EventStore, label: str, batches: int = 100) -> dict:
    """Batches of 50 events on one aggregate"""
    print(f"\n=== Benchmark: Batched Appends ({label}) ===")

    batch_size = 50
    start_time = time.perf_counter()
    for i in range(batches):
        store.save(make_events("batched", i * batch_size + 1, batch_size))
    elapsed = time.perf_counter() - start_time

    total = batches * batch_size
    rate = total / elapsed if elapsed > 0 else 0
    print(f"  Events written: {total}")
    print(f"  Time elapsed: {elapsed:.2f}s")
    print(f"  Events/sec: {rate:.1f}")
    print("  Target: >1000 events/sec")
    print(f"  Status: {'✓ PASS' if rate > 1000 else '✗ FAIL'}")

    return {"test": f"batched_appends_{label}", "elapsed_sec": elapsed, "rate": rate, "pass": rate > 1000}


def benchmark_history_read(store: EventStore, label: str) -> dict:
    """Read back the batched aggregate through the paging iterator"""
    print(f"\n=== Benchmark: History Read ({label}) ===")

    start_time = time.perf_counter()
    with store.get("batched", "benchmark", 0) as events:
        count = sum(1 for _ in events)
    elapsed = time.perf_counter() - start_time

    print(f"  Events read: {count}")
    print(f"  Time elapsed: {elapsed:.2f}s")
    print("  Target: <1sec")
    print(f"  Status: {'✓ PASS' if elapsed < 1 else '✗ FAIL'}")

    return {"test": f"history_read_{label}", "events": count, "elapsed_sec": elapsed, "pass": elapsed < 1}


def main() -> None:
    """Run all benchmarks"""
    print("=" * 70)
    print("  Event Ledger - Performance Benchmarks")
    print("=" * 70)

    results = []
    with tempfile.TemporaryDirectory() as tmpdir:
        stores = {
            "memory": EventStore(InMemoryBackend()),
            "sqlite": EventStore(SQLiteBackend(Path(tmpdir) / "bench.db")),
        }
        for label, store in stores.items():
            results.append(benchmark_single_appends(store, label))
            results.append(benchmark_batched_appends(store, label))
            results.append(benchmark_history_read(store, label))

    print("\n" + "=" * 70)
    print("  Summary")
    print("=" * 70)
    for result in results:
        status = "✓" if result["pass"] else "✗"
        print(f"  {status} {result['test']}: {result['elapsed_sec']:.2f}s")

    passed = sum(1 for result in results if result["pass"])
    print(f"\n  {passed}/{len(results)} benchmarks passed")


if __name__ == "__main__":
    main()

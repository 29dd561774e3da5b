"""
Prometheus metrics for the event ledger.

Counts what goes in and out of the store, how often optimistic concurrency
rejects an append (and at which stage), and how long saves take.
"""

from prometheus_client import Counter, Histogram, start_http_server

# ============================================================================
# Append / Read Metrics
# ============================================================================

events_appended_total = Counter(
    "ledger_events_appended_total",
    "Total number of events committed to the store",
    ["aggregate_type"],
)

events_loaded_total = Counter(
    "ledger_events_loaded_total",
    "Total number of events decoded from read iterators",
    ["aggregate_type"],
)

concurrency_conflicts_total = Counter(
    "ledger_concurrency_conflicts_total",
    "Total number of appends rejected by optimistic concurrency control",
    ["stage"],  # stage: precheck, commit
)

save_duration_seconds = Histogram(
    "ledger_save_duration_seconds",
    "Duration of a full save (version check, allocation, commit) in seconds",
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# ============================================================================
# Backend Metrics
# ============================================================================

global_versions_allocated_total = Counter(
    "ledger_global_versions_allocated_total",
    "Total number of global versions issued by the allocator",
)

backend_errors_total = Counter(
    "ledger_backend_errors_total",
    "Total number of backend failures surfaced to callers",
    ["operation"],
)


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)

"""Prometheus metrics for NoteEase.

All metric objects are defined here so they can be imported from any module.
"""

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# Store metrics
# ---------------------------------------------------------------------------

STORE_MUTATIONS = Counter(
    "noteease_store_mutations_total",
    "Total number of note store commands applied",
    ["operation"],
)

NOTES = Gauge(
    "noteease_notes",
    "Number of notes held in memory",
    ["state"],  # active, trashed
)

# ---------------------------------------------------------------------------
# Storage metrics
# ---------------------------------------------------------------------------

STORAGE_WRITES = Counter(
    "noteease_storage_writes_total",
    "Total record writes to the key-value store",
    ["record", "status"],  # notes/theme/categories, success/failure
)

STORAGE_LOAD_ERRORS = Counter(
    "noteease_storage_load_errors_total",
    "Load failures that forced a storage reset",
    ["kind"],  # too_large, generic, critical
)

# ---------------------------------------------------------------------------
# HTTP request metrics
# ---------------------------------------------------------------------------

HTTP_REQUESTS = Counter(
    "noteease_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_DURATION = Histogram(
    "noteease_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["endpoint"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
)

"""Prometheus metrics for the MongoDB sink."""

from prometheus_client import Counter

RECORDS_INSERTED = Counter(
    "logsink_records_inserted_total",
    "Total number of records inserted into MongoDB",
    labelnames=["collection"],
)

RECORD_INSERT_FAILURES = Counter(
    "logsink_record_insert_failures_total",
    "Total number of records the server rejected or that could not be sent",
    labelnames=["collection"],
)

DOCUMENTS_EXPIRED = Counter(
    "logsink_documents_expired_total",
    "Total number of documents removed by the retention sweep",
    labelnames=["collection"],
)

SWEEP_RUNS = Counter(
    "logsink_sweep_runs_total",
    "Total number of periodic sweep runs",
    labelnames=["collection", "sweep", "outcome"],
)

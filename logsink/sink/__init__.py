"""MongoDB output sink: record normalization, insertion and periodic sweeps."""

from logsink.sink.mongodb import MongoLogSink
from logsink.sink.normalize import StoredDocument, format_timestamp, normalize_record
from logsink.sink.sweeps import (
    FieldDiscoverySweep,
    PeriodicSweep,
    RetentionSweep,
    SweepOutput,
)

__all__ = [
    "FieldDiscoverySweep",
    "MongoLogSink",
    "PeriodicSweep",
    "RetentionSweep",
    "StoredDocument",
    "SweepOutput",
    "format_timestamp",
    "normalize_record",
]

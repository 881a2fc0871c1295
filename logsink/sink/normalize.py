"""Record normalization into the canonical stored envelope.

Every input record is reshaped into a StoredDocument. Missing or malformed
optional fields fall back to defaults; normalization never raises.
"""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

# Input keys consumed by the envelope; everything else lands in `fields`.
ENVELOPE_KEYS: frozenset[str] = frozenset({
    "type",
    "epochtime",
    "date",
    "hostname",
    "message",
    "uuid",
})

DEFAULT_TYPE = "unknown"
DEFAULT_SOURCE_HOST = "none"


class StoredDocument(BaseModel):
    """A record as persisted by the normalizing sink."""

    type: str = DEFAULT_TYPE
    timestamp: str
    source_host: str = DEFAULT_SOURCE_HOST
    message: Any = None
    fields: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Return the MongoDB document; `id` is omitted when absent."""
        return self.model_dump(exclude={"id"} if self.id is None else None)


def format_timestamp(value: datetime) -> str:
    """Encode a datetime as a UTC ISO-8601 string with fixed precision.

    Fixed precision keeps stored timestamps comparable as strings, which the
    retention sweep relies on.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _from_epoch(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(float(value), UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _from_iso8601(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def resolve_timestamp(record: Mapping[str, Any], now: datetime | None = None) -> str:
    """Pick the record's timestamp: epochtime, then ISO date, then now."""
    moment = _from_epoch(record.get("epochtime"))
    if moment is None:
        moment = _from_iso8601(record.get("date"))
    if moment is None:
        moment = now or datetime.now(UTC)
    return format_timestamp(moment)


def _serialize_fields(fields: Mapping[str, Any]) -> str:
    try:
        return json.dumps(fields, default=str)
    except (TypeError, ValueError):
        # circular structures or non-string keys
        return repr(dict(fields))


def _as_text(value: Any, default: str) -> str:
    if value is None:
        return default
    return value if isinstance(value, str) else str(value)


def normalize_record(record: Mapping[str, Any], now: datetime | None = None) -> StoredDocument:
    """Reshape an arbitrary record into a StoredDocument.

    Args:
        record: Input record from the pipeline
        now: Fallback time when the record carries no usable timestamp

    Returns:
        The canonical envelope for the record
    """
    fields = {str(key): value for key, value in record.items() if key not in ENVELOPE_KEYS}

    if "message" in record:
        message = record["message"]
    else:
        message = _serialize_fields(fields)

    uuid = record.get("uuid")

    return StoredDocument(
        type=_as_text(record.get("type"), DEFAULT_TYPE),
        timestamp=resolve_timestamp(record, now),
        source_host=_as_text(record.get("hostname"), DEFAULT_SOURCE_HOST),
        message=message,
        fields=fields,
        id=None if uuid is None else _as_text(uuid, ""),
    )

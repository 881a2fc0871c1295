"""MongoDB sink configuration models."""

import sys
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

ONE_WEEK_SECONDS = 60 * 60 * 24 * 7
ONE_DAY_SECONDS = 60 * 60 * 24

IndexDirection = int | str


def _stdin_is_tty() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, OSError, ValueError):
        # stdin replaced or closed by the host process
        return False


class IndexSpec(BaseModel):
    """One index definition: ordered key directions plus create options.

    Accepts the pipeline's list form as well as the mapping form:

        [{"foo": 1, "bar": -1}, {"unique": true}]
        {"keys": {"foo": 1}, "options": {"unique": true}}
    """

    keys: dict[str, IndexDirection] = Field(
        description="Field name to direction (1, -1, 'text', 'hashed', ...)",
    )
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword options for create_index (unique, sparse, name, ...)",
    )

    @model_validator(mode="before")
    @classmethod
    def _accept_list_form(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            if not 1 <= len(data) <= 2:
                raise ValueError("index definition must be [keys] or [keys, options]")
            return {"keys": data[0], "options": data[1] if len(data) == 2 else {}}
        return data

    @field_validator("keys")
    @classmethod
    def _keys_not_empty(cls, value: dict[str, IndexDirection]) -> dict[str, IndexDirection]:
        if not value:
            raise ValueError("index definition needs at least one key")
        return value

    def key_list(self) -> list[tuple[str, IndexDirection]]:
        """Return keys in the ordered pair form the driver expects."""
        return list(self.keys.items())


class MongoSinkConfig(BaseModel):
    """Configuration for one MongoDB sink instance."""

    hostname: str = Field(
        default="localhost",
        validation_alias=AliasChoices("hostname", "host"),
        description="MongoDB host name or connection URI",
    )
    port: int = Field(
        default=27017,
        ge=1,
        le=65535,
        description="MongoDB port",
    )
    connection_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra keyword arguments passed to the client",
    )
    username: str | None = Field(default=None, description="Authentication user")
    password: str | None = Field(default=None, description="Authentication password")
    auth_source: str | None = Field(
        default=None,
        description="Database holding the user (defaults to the target database)",
    )
    database: str = Field(min_length=1, description="Target database name")
    collection: str = Field(min_length=1, description="Target collection name")
    indexes: list[IndexSpec] = Field(
        default_factory=list,
        description="Indexes applied once when the collection is first resolved",
    )
    retention: float = Field(
        default=ONE_WEEK_SECONDS,
        ge=0,
        description="Seconds to keep records; 0 keeps them forever",
    )
    retention_field: str | None = Field(
        default=None,
        description="Field compared against the cutoff (timestamp or date by default)",
    )
    freeze_retention_cutoff: bool = Field(
        default=False,
        description="Compute the retention cutoff once at startup instead of per sweep",
    )
    verbose: bool = Field(
        default_factory=_stdin_is_tty,
        description="Log index applications, insertion counts and cleanup results",
    )
    collect_fields: bool = Field(
        default=False,
        description="Collect distinct field names into <collection>_keys",
    )
    normalize: bool = Field(
        default=False,
        description="Store records in the canonical envelope instead of as-is",
    )
    sweep_delay: float = Field(
        default=30.0,
        ge=0,
        description="Seconds before the first sweep",
    )
    sweep_interval: float = Field(
        default=ONE_DAY_SECONDS,
        gt=0,
        description="Seconds between sweeps",
    )
    server_selection_timeout_ms: int = Field(
        default=30000,
        gt=0,
        description="How long the driver waits for a reachable server",
    )

    @model_validator(mode="after")
    def _password_needs_username(self) -> "MongoSinkConfig":
        if self.password is not None and self.username is None:
            raise ValueError("password given without username")
        return self

    @property
    def has_credentials(self) -> bool:
        return self.username is not None

    @property
    def effective_retention_field(self) -> str:
        if self.retention_field:
            return self.retention_field
        return "timestamp" if self.normalize else "date"

    @property
    def keys_collection(self) -> str:
        return f"{self.collection}_keys"

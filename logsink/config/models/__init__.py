"""Configuration models for the sink."""

from logsink.config.models.observability import (
    LoggingConfig,
    ObservabilityConfig,
)
from logsink.config.models.sink import IndexSpec, MongoSinkConfig

__all__ = [
    "IndexSpec",
    "LoggingConfig",
    "MongoSinkConfig",
    "ObservabilityConfig",
]

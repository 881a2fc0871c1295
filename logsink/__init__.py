"""logsink: MongoDB output adapter for message-passing log pipelines."""

__version__ = "0.3.0"

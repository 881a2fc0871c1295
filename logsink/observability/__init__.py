"""Observability: structured logging and Prometheus metrics.

Logging goes through structlog, counters through prometheus_client.
"""

"""Slow-query telemetry aggregation service."""

__version__ = "0.3.0"

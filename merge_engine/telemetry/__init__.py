"""Logging helpers for the merge engine."""

from merge_engine.telemetry.json_formatter import JSONFormatter, configure_logging

__all__ = [
    "JSONFormatter",
    "configure_logging",
]

"""Convenience exports for schemaprobe telemetry utilities."""

from . import exporters, hooks, logger, metrics

__all__ = [
    "exporters",
    "hooks",
    "logger",
    "metrics",
]

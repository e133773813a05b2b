"""Common utilities for the route planning services."""

__all__ = [
    "settings",
    "logging",
    "metrics",
    "telemetry",
]

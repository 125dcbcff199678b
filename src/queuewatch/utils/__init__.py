"""Utility functions for the queue monitor."""

from queuewatch.utils.time import format_duration, monotonic, to_iso, utc_now


__all__ = [
    "format_duration",
    "monotonic",
    "to_iso",
    "utc_now",
]

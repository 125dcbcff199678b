"""HTTP query API for the queue snapshot."""

from queuewatch.api.server import create_app, router


__all__ = [
    "create_app",
    "router",
]

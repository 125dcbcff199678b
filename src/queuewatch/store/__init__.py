"""Snapshot store module."""

from queuewatch.store.history import CounterHistoryBook
from queuewatch.store.snapshot import SnapshotStore, StoreView


__all__ = [
    "CounterHistoryBook",
    "SnapshotStore",
    "StoreView",
]

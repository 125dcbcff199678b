"""Core module: domain types, errors and the failover controller."""

from queuewatch.core.controller import FailoverController
from queuewatch.core.errors import (
    AcquisitionError,
    DecodeFailure,
    EmbeddedStateNotFound,
    NetworkFailure,
    ProtocolFailure,
    StreamStalled,
)
from queuewatch.core.types import (
    AcquisitionMode,
    ConnectionState,
    CounterHistory,
    QueueEntry,
    QueueSnapshot,
    SnapshotSource,
    StreamState,
)


__all__ = [
    "AcquisitionError",
    "AcquisitionMode",
    "ConnectionState",
    "CounterHistory",
    "DecodeFailure",
    "EmbeddedStateNotFound",
    "FailoverController",
    "NetworkFailure",
    "ProtocolFailure",
    "QueueEntry",
    "QueueSnapshot",
    "SnapshotSource",
    "StreamState",
    "StreamStalled",
]

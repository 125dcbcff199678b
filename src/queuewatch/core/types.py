"""
Type definitions for the queue monitor.

This module contains the dataclasses, enums and Protocol definitions shared
by the store, the upstream clients, the controller and the API.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Protocol

from queuewatch.utils.time import to_iso


# =============================================================================
# Enums
# =============================================================================


class SnapshotSource(str, Enum):
    """Acquisition mode that produced a snapshot."""

    STREAMING = "streaming"
    SCRAPED = "scraped"
    SIMULATED = "simulated"


class AcquisitionMode(str, Enum):
    """Controller acquisition mode."""

    STREAMING = "streaming"
    SCRAPING = "scraping"
    SIMULATED = "simulated"
    RECONNECTING = "reconnecting"

    @property
    def source(self) -> SnapshotSource | None:
        """Snapshot source authorized to write while in this mode."""
        return _MODE_SOURCES.get(self)


_MODE_SOURCES: dict[AcquisitionMode, SnapshotSource] = {
    AcquisitionMode.STREAMING: SnapshotSource.STREAMING,
    AcquisitionMode.SCRAPING: SnapshotSource.SCRAPED,
    AcquisitionMode.SIMULATED: SnapshotSource.SIMULATED,
}


class StreamState(Enum):
    """Stream connection state."""

    IDLE = auto()
    CONNECTING = auto()
    OPEN = auto()
    STALLED = auto()
    CLOSED = auto()
    ERRORED = auto()


# =============================================================================
# Queue Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class QueueEntry:
    """
    One upcoming number in the waiting list.

    Extra upstream fields (customer name, service type, ...) are kept
    verbatim in metadata.
    """

    queue_no: int
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {**self.metadata, "queueNo": self.queue_no}


@dataclass(slots=True, frozen=True)
class QueueSnapshot:
    """
    Most recently known state of the queue.

    Frozen: a write to the store replaces the whole snapshot, never
    individual fields.
    """

    current_queue: int | None
    counter_no: str | None
    waiting: tuple[QueueEntry, ...]
    fetched_at: datetime
    source: SnapshotSource

    @property
    def total_waiting(self) -> int:
        return len(self.waiting)

    def to_dict(self) -> dict[str, Any]:
        """Render as the camelCase document served by the API."""
        return {
            "currentQueue": self.current_queue,
            "counterNo": self.counter_no,
            "waiting": [entry.to_dict() for entry in self.waiting],
            "totalWaiting": self.total_waiting,
            "fetchedAt": to_iso(self.fetched_at),
            "source": self.source.value,
        }


@dataclass(slots=True, frozen=True)
class CompletedEntry:
    """A number a counter finished serving."""

    queue_no: int
    completed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"queueNo": self.queue_no, "completedAt": to_iso(self.completed_at)}


@dataclass(slots=True)
class CounterHistory:
    """Serving history of a single counter, most recent first."""

    current: int | None = None
    completed: list[CompletedEntry] = field(default_factory=list)

    def copy(self) -> "CounterHistory":
        return CounterHistory(current=self.current, completed=list(self.completed))

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "completed": [entry.to_dict() for entry in self.completed],
        }


# =============================================================================
# Connection Health
# =============================================================================


@dataclass(slots=True)
class ConnectionState:
    """
    Acquisition health, owned and mutated by the failover controller.

    consecutive_failures counts failures in the current mode only; the
    per-source totals never reset.
    """

    mode: AcquisitionMode
    mode_since: datetime
    consecutive_failures: int = 0
    last_error: str | None = None
    stream_failures: int = 0
    scrape_failures: int = 0
    transitions: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "modeSince": to_iso(self.mode_since),
            "consecutiveFailures": self.consecutive_failures,
            "lastError": self.last_error,
            "streamFailures": self.stream_failures,
            "scrapeFailures": self.scrape_failures,
            "transitions": self.transitions,
        }


@dataclass(slots=True, frozen=True)
class RetryOutcome:
    """Result of an operator-requested reconnect."""

    method: SnapshotSource | None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.method is not None


# =============================================================================
# Protocols
# =============================================================================


class SnapshotHandler(Protocol):
    """Receives candidate snapshots decoded by an acquisition client."""

    def __call__(self, snapshot: QueueSnapshot) -> bool: ...

"""
In-memory holder of the current queue snapshot.

A single SnapshotStore instance is created at startup and passed to the
controller (the only writer) and the API (a reader).
"""

from dataclasses import dataclass
from datetime import datetime

from queuewatch.config.constants import DEFAULT_HISTORY_DEPTH
from queuewatch.core.types import CounterHistory, QueueSnapshot
from queuewatch.store.history import CounterHistoryBook
from queuewatch.utils.time import utc_now


@dataclass(slots=True, frozen=True)
class StoreView:
    """Point-in-time copy of the store contents."""

    snapshot: QueueSnapshot | None
    histories: dict[str, CounterHistory]
    write_count: int
    last_write_at: datetime | None

    @property
    def has_data(self) -> bool:
        return self.snapshot is not None


class SnapshotStore:
    """
    Holds the one current QueueSnapshot and the counter history book.

    Features:
    - write() replaces the snapshot wholesale and never fails
    - read() never blocks and returns copies
    - no timestamp gating: the last write wins
    """

    __slots__ = ("_snapshot", "_history", "_write_count", "_last_write_at")

    def __init__(self, history_depth: int = DEFAULT_HISTORY_DEPTH) -> None:
        """
        Initialize an empty store.

        Args:
            history_depth: Completed numbers remembered per counter.
        """
        self._snapshot: QueueSnapshot | None = None
        self._history = CounterHistoryBook(depth=history_depth)
        self._write_count = 0
        self._last_write_at: datetime | None = None

    def write(self, snapshot: QueueSnapshot) -> None:
        """
        Replace the current snapshot and update its counter's history.

        Callers validate candidates before writing.

        Args:
            snapshot: Validated snapshot.
        """
        self._snapshot = snapshot
        self._history.record(snapshot.counter_no, snapshot.current_queue)
        self._write_count += 1
        self._last_write_at = utc_now()

    def read(self) -> StoreView:
        """Get the current snapshot and history."""
        return StoreView(
            snapshot=self._snapshot,
            histories=self._history.snapshot(),
            write_count=self._write_count,
            last_write_at=self._last_write_at,
        )

    @property
    def snapshot(self) -> QueueSnapshot | None:
        """Current snapshot, or None before the first write."""
        return self._snapshot

    @property
    def has_data(self) -> bool:
        """True once anything was written; never reverts."""
        return self._snapshot is not None

    @property
    def write_count(self) -> int:
        return self._write_count

    def history(self, counter_no: str) -> CounterHistory | None:
        """Get one counter's history."""
        return self._history.get(counter_no)

    def histories(self) -> dict[str, CounterHistory]:
        """Get every counter's history."""
        return self._history.snapshot()

    @property
    def counter_count(self) -> int:
        return len(self._history)

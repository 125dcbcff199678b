"""
Per-counter serving history.

Remembers, for every counter seen in a snapshot, the number it is serving
now and the last few numbers it finished.
"""

from queuewatch.config.constants import DEFAULT_HISTORY_DEPTH
from queuewatch.core.types import CompletedEntry, CounterHistory
from queuewatch.utils.time import utc_now


class CounterHistoryBook:
    """
    Lazily created CounterHistory records keyed by counter id.

    Records live for the whole process; nothing is ever removed.
    """

    __slots__ = ("_depth", "_records")

    def __init__(self, depth: int = DEFAULT_HISTORY_DEPTH) -> None:
        """
        Initialize an empty book.

        Args:
            depth: Maximum completed entries kept per counter.
        """
        self._depth = depth
        self._records: dict[str, CounterHistory] = {}

    def record(self, counter_no: str | None, queue_no: int | None) -> CounterHistory | None:
        """
        Apply one observation of a counter serving a number.

        The previous number moves to the head of completed only when the
        counter switches to a different, known number.

        Args:
            counter_no: Counter identifier; None leaves the book unchanged.
            queue_no: Number being served; None leaves the book unchanged.

        Returns:
            The counter's record, or None when nothing was recorded.
        """
        if counter_no is None or queue_no is None:
            return None

        history = self._records.get(counter_no)
        if history is None:
            history = CounterHistory()
            self._records[counter_no] = history

        if history.current is not None and history.current != queue_no:
            history.completed.insert(
                0, CompletedEntry(queue_no=history.current, completed_at=utc_now())
            )
            del history.completed[self._depth :]

        history.current = queue_no
        return history

    def get(self, counter_no: str) -> CounterHistory | None:
        """Get a copy of one counter's record."""
        history = self._records.get(counter_no)
        return history.copy() if history else None

    def snapshot(self) -> dict[str, CounterHistory]:
        """Copy of every record, safe to hand to readers."""
        return {counter: history.copy() for counter, history in self._records.items()}

    @property
    def depth(self) -> int:
        return self._depth

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, counter_no: object) -> bool:
        return counter_no in self._records

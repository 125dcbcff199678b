"""
Simulated queue feed for when no real source is reachable.

Generates plausible, internally consistent queue progress so that readers
always see a snapshot. It is not a forecast of the real queue.
"""

import itertools
import random
from collections import deque
from typing import Any

from queuewatch.config.constants import (
    DEFAULT_SIMULATION_ADVANCE_PROBABILITY,
    DEFAULT_SIMULATION_LOOKAHEAD,
    DEFAULT_SIMULATION_START_QUEUE,
    SIMULATION_COUNTERS,
)
from queuewatch.core.types import QueueEntry, QueueSnapshot, SnapshotSource
from queuewatch.utils.time import utc_now


class SimulatedFeed:
    """
    Synthetic queue with a serving cursor and a fixed-length look-ahead.

    Features:
    - Each tick serves the next number with a configured probability
    - The serving counter rotates round-robin through a fixed pool
    - current_queue never decreases; the waiting list length never changes
    """

    def __init__(
        self,
        start_queue: int = DEFAULT_SIMULATION_START_QUEUE,
        lookahead: int = DEFAULT_SIMULATION_LOOKAHEAD,
        advance_probability: float = DEFAULT_SIMULATION_ADVANCE_PROBABILITY,
        counters: tuple[str, ...] = SIMULATION_COUNTERS,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize the simulated feed.

        Args:
            start_queue: Number served before the first tick.
            lookahead: Length of the waiting list.
            advance_probability: Chance per tick of serving the next number.
            counters: Counter ids the serving number rotates through.
            rng: Random source (inject a seeded one for tests).
        """
        if lookahead < 1:
            raise ValueError("lookahead must be at least 1")
        if not counters:
            raise ValueError("counters must not be empty")

        self._lookahead = lookahead
        self._advance_probability = advance_probability
        self._counters = counters
        self._rng = rng or random.Random()

        self._counter_cycle = itertools.cycle(counters)
        self._counter_no = next(self._counter_cycle)
        self._current = start_queue
        self._waiting: deque[QueueEntry] = deque()
        self._tick_count = 0
        self._advance_count = 0
        self._fill_waiting()

    def _make_entry(self, queue_no: int) -> QueueEntry:
        metadata: dict[str, Any] = {
            "customerName": f"Customer {queue_no}",
            "serviceType": "General service",
        }
        return QueueEntry(queue_no=queue_no, metadata=metadata)

    def _fill_waiting(self) -> None:
        self._waiting = deque(
            self._make_entry(self._current + offset) for offset in range(1, self._lookahead + 1)
        )

    def seed(self, snapshot: QueueSnapshot | None) -> None:
        """
        Continue from a real snapshot's serving number.

        The cursor only ever moves forward; an older or unknown number is
        ignored.
        """
        if snapshot is None or snapshot.current_queue is None:
            return
        if snapshot.current_queue <= self._current:
            return

        self._current = snapshot.current_queue
        if snapshot.counter_no in self._counters:
            # Resume rotation right after the real counter
            self._counter_cycle = itertools.cycle(self._counters)
            for counter in self._counter_cycle:
                if counter == snapshot.counter_no:
                    break
            self._counter_no = snapshot.counter_no
        self._fill_waiting()

    def tick(self) -> QueueSnapshot:
        """
        Advance the simulation by one tick.

        Returns:
            Snapshot after the tick (unchanged queue when the tick idles).
        """
        self._tick_count += 1

        if self._rng.random() < self._advance_probability:
            tail = self._waiting[-1].queue_no
            self._current = self._waiting.popleft().queue_no
            self._waiting.append(self._make_entry(tail + 1))
            self._counter_no = next(self._counter_cycle)
            self._advance_count += 1

        return self.snapshot()

    def snapshot(self) -> QueueSnapshot:
        """Get the current simulated state as a snapshot."""
        return QueueSnapshot(
            current_queue=self._current,
            counter_no=self._counter_no,
            waiting=tuple(self._waiting),
            fetched_at=utc_now(),
            source=SnapshotSource.SIMULATED,
        )

    @property
    def current_queue(self) -> int:
        return self._current

    @property
    def waiting_length(self) -> int:
        return len(self._waiting)

    @property
    def tick_count(self) -> int:
        """Get number of ticks processed."""
        return self._tick_count

    @property
    def advance_count(self) -> int:
        """Get number of ticks that served a new number."""
        return self._advance_count

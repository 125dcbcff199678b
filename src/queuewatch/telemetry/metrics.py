"""
In-memory acquisition metrics.

Event counts (snapshots written, mode transitions, fetch failures) and
rolling latency windows for upstream calls, reported by /status.
"""

from collections import Counter, defaultdict, deque
from dataclasses import asdict, dataclass
from functools import partial

from queuewatch.config.constants import LATENCY_WINDOW_SIZE
from queuewatch.utils.time import monotonic


@dataclass
class LatencyStats:
    """Summary of one latency window, in milliseconds."""

    min_ms: float = 0.0
    max_ms: float = 0.0
    avg_ms: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    count: int = 0


def _percentile(ordered: list[float], fraction: float) -> float:
    return ordered[min(int(len(ordered) * fraction), len(ordered) - 1)]


class MetricsCollector:
    """
    Named counters plus a bounded window of samples per latency metric.

    Only the most recent ``latency_window_size`` samples of each metric
    count towards its stats.
    """

    def __init__(self, latency_window_size: int = LATENCY_WINDOW_SIZE) -> None:
        self._events: Counter[str] = Counter()
        self._samples: defaultdict[str, deque[float]] = defaultdict(
            partial(deque, maxlen=latency_window_size)
        )
        self._started = monotonic()

    def record_latency(self, name: str, seconds: float) -> None:
        """
        Add one sample to a latency window.

        Args:
            name: Metric name, e.g. "stream_connect" or "scrape_fetch".
            seconds: Measured duration; stored in milliseconds.
        """
        self._samples[name].append(seconds * 1000)

    def increment_counter(self, name: str, value: int = 1) -> None:
        self._events[name] += value

    def get_counter(self, name: str) -> int:
        """Current count for ``name`` (0 if never incremented)."""
        return self._events[name]

    def get_latency_stats(self, name: str) -> LatencyStats:
        """Min/max/mean and percentiles over the current window of ``name``."""
        window = self._samples.get(name)
        if not window:
            return LatencyStats()

        ordered = sorted(window)
        return LatencyStats(
            min_ms=round(ordered[0], 2),
            max_ms=round(ordered[-1], 2),
            avg_ms=round(sum(ordered) / len(ordered), 2),
            p50_ms=round(_percentile(ordered, 0.5), 2),
            p95_ms=round(_percentile(ordered, 0.95), 2),
            count=len(ordered),
        )

    @property
    def uptime_seconds(self) -> float:
        """Seconds since creation or the last reset."""
        return monotonic() - self._started

    def get_summary(self) -> dict[str, object]:
        """Counters, latency stats and uptime as a JSON-ready dict."""
        return {
            "uptimeSeconds": round(self.uptime_seconds, 1),
            "counters": {name: count for name, count in self._events.items() if count},
            "latencies": {
                name: asdict(self.get_latency_stats(name))
                for name, window in self._samples.items()
                if window
            },
        }

    def reset(self) -> None:
        self._events.clear()
        self._samples.clear()
        self._started = monotonic()

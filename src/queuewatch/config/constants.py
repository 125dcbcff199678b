"""
Acquisition constants and default configuration values.

This module contains all hardcoded values used throughout the queue monitor.
Values are organized by category; anything an operator may want to tune is
also exposed through Settings.
"""

from typing import Final


# =============================================================================
# Upstream Endpoints
# =============================================================================

DEFAULT_PAGE_URL: Final[str] = "https://elands.dol.go.th/QueueOnlineServer/queue/294"
DEFAULT_STREAM_URL: Final[str] = (
    "https://elands.dol.go.th/QueueOnlineServer/service/queue_stream/294"
)

# The upstream rejects clients that do not look like a browser
BROWSER_HEADERS: Final[dict[str, str]] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "th-TH,th;q=0.9,en;q=0.8",
    "Accept-Encoding": "identity",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

STREAM_ACCEPT: Final[str] = "text/event-stream"


# =============================================================================
# Upstream Payload Format
# =============================================================================

# Key of the stream event payload that carries the queue document
STREAM_FRAME_KEY: Final[str] = "manageListQueue"

# JavaScript variable holding the queue document in the rendered page
EMBEDDED_STATE_MARKER: Final[str] = "queueOnlineDataFirst"
EMBEDDED_STATE_PATTERN: Final[str] = r"var\s+queueOnlineDataFirst\s*=\s*'(.*?)'\s*;"


# =============================================================================
# Reconnection Strategy
# =============================================================================

MIN_RECONNECT_DELAY: Final[float] = 1.0  # seconds
MAX_RECONNECT_DELAY: Final[float] = 30.0  # seconds
RECONNECT_MULTIPLIER: Final[float] = 2.0

DEFAULT_STREAM_RETRY_BUDGET: Final[int] = 5
DEFAULT_SCRAPE_RETRY_BUDGET: Final[int] = 3


# =============================================================================
# Timeouts & Intervals
# =============================================================================

DEFAULT_CONNECT_TIMEOUT: Final[float] = 20.0  # seconds
DEFAULT_STALL_TIMEOUT: Final[float] = 30.0  # seconds
DEFAULT_SCRAPE_TIMEOUT: Final[float] = 15.0  # seconds

DEFAULT_SCRAPE_INTERVAL: Final[float] = 20.0  # seconds
DEFAULT_RECONNECT_PROBE_INTERVAL: Final[float] = 60.0  # seconds
DEFAULT_SIMULATION_TICK_INTERVAL: Final[float] = 30.0  # seconds

# Upper bound for a single read from the stream body
STREAM_READ_CHUNK: Final[int] = 64 * 1024


# =============================================================================
# Simulation
# =============================================================================

DEFAULT_SIMULATION_START_QUEUE: Final[int] = 2010
DEFAULT_SIMULATION_LOOKAHEAD: Final[int] = 8
DEFAULT_SIMULATION_ADVANCE_PROBABILITY: Final[float] = 0.6
SIMULATION_COUNTERS: Final[tuple[str, ...]] = ("1", "2", "3")


# =============================================================================
# Counter History
# =============================================================================

DEFAULT_HISTORY_DEPTH: Final[int] = 3


# =============================================================================
# Query API
# =============================================================================

DEFAULT_API_HOST: Final[str] = "0.0.0.0"
DEFAULT_API_PORT: Final[int] = 3000
API_TITLE: Final[str] = "Queue Monitor"


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000

# Samples kept per latency window
LATENCY_WINDOW_SIZE: Final[int] = 200

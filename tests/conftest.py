"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

from collections.abc import AsyncIterator
from typing import Any

import pytest
import pytest_asyncio

from queuewatch.config.settings import Settings
from queuewatch.core.types import QueueSnapshot, SnapshotSource
from queuewatch.store.snapshot import SnapshotStore
from queuewatch.telemetry.metrics import MetricsCollector
from tests.mocks.sse_server import UpstreamTestServer
from tests.mocks.upstream import MockScrapeClient, MockStreamClient, make_snapshot


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with budgets and intervals shrunk for tests."""
    return Settings(
        _env_file=None,
        stream_retry_budget=3,
        scrape_retry_budget=2,
        backoff_initial=0.01,
        backoff_max=0.02,
        backoff_multiplier=2.0,
        connect_timeout=0.5,
        stall_timeout=0.3,
        scrape_timeout=0.5,
        scrape_interval=0.02,
        reconnect_probe_interval=0.05,
        simulation_tick_interval=0.02,
        use_uvloop=False,
    )


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def store() -> SnapshotStore:
    """Create empty snapshot store."""
    return SnapshotStore(history_depth=3)


@pytest.fixture
def metrics() -> MetricsCollector:
    """Create metrics collector."""
    return MetricsCollector()


@pytest.fixture
def scraped_snapshot() -> QueueSnapshot:
    """Queue 4015 served at counter 2, two waiting."""
    return make_snapshot(4015, "2", (4016, 4017), SnapshotSource.SCRAPED)


@pytest.fixture
def upstream_document() -> dict[str, Any]:
    """Queue document in the nested upstream shape."""
    return {
        "currentQueue": {"queueNo": "4015", "counterNo": "2", "customerName": "A"},
        "queue": [
            {"queueNo": "4016", "customerName": "B", "serviceType": "Transfer"},
            {"queueNo": "4017", "customerName": "C", "serviceType": "Mortgage"},
        ],
    }


# =============================================================================
# Upstream Fixtures
# =============================================================================


@pytest.fixture
def mock_stream() -> MockStreamClient:
    """Stream mock that refuses connections until allowed."""
    return MockStreamClient()


@pytest.fixture
def mock_scraper() -> MockScrapeClient:
    """Scraper mock that fails until scripted."""
    return MockScrapeClient()


@pytest_asyncio.fixture
async def upstream_server() -> AsyncIterator[UpstreamTestServer]:
    """Loopback upstream serving /stream and /page."""
    server = UpstreamTestServer()
    await server.start()
    yield server
    await server.stop()

"""
Integration tests for ScrapeClient.

Fetches the queue page from a loopback server with the real aiohttp client.
"""

from typing import Any

import pytest

from queuewatch.core.errors import (
    DecodeFailure,
    EmbeddedStateNotFound,
    NetworkFailure,
    ProtocolFailure,
)
from queuewatch.core.types import SnapshotSource
from queuewatch.telemetry.metrics import MetricsCollector
from queuewatch.upstream.scrape import ScrapeClient
from tests.mocks.sse_server import UpstreamTestServer, render_page


class TestScrapeClient:
    """Integration tests for page fetch -> snapshot."""

    @pytest.mark.asyncio
    async def test_fetch_once(
        self,
        upstream_server: UpstreamTestServer,
        upstream_document: dict[str, Any],
        metrics: MetricsCollector,
    ) -> None:
        """Test a page with embedded state yields a scraped snapshot."""
        upstream_server.page_html = render_page(upstream_document)

        async with ScrapeClient(upstream_server.page_url, timeout=1.0, metrics=metrics) as client:
            snapshot = await client.fetch_once()

        assert snapshot.current_queue == 4015
        assert snapshot.counter_no == "2"
        assert snapshot.source is SnapshotSource.SCRAPED
        assert metrics.get_counter("scrape_success") == 1
        assert metrics.get_latency_stats("scrape_fetch").count == 1

    @pytest.mark.asyncio
    async def test_bad_status(self, upstream_server: UpstreamTestServer) -> None:
        """Test a non-2xx page raises ProtocolFailure with the status."""
        upstream_server.page_status = 502

        async with ScrapeClient(upstream_server.page_url, timeout=1.0) as client:
            with pytest.raises(ProtocolFailure) as exc_info:
                await client.fetch_once()

        assert exc_info.value.status == 502
        assert client.last_failure is exc_info.value

    @pytest.mark.asyncio
    async def test_missing_state(self, upstream_server: UpstreamTestServer) -> None:
        """Test a page without the assignment raises EmbeddedStateNotFound."""
        upstream_server.page_html = render_page(None)

        async with ScrapeClient(upstream_server.page_url, timeout=1.0) as client:
            with pytest.raises(EmbeddedStateNotFound):
                await client.fetch_once()

    @pytest.mark.asyncio
    async def test_undecodable_state(
        self,
        upstream_server: UpstreamTestServer,
        metrics: MetricsCollector,
    ) -> None:
        """Test an assignment with no queue fields raises DecodeFailure."""
        upstream_server.page_html = render_page({"message": "maintenance"})

        async with ScrapeClient(upstream_server.page_url, timeout=1.0, metrics=metrics) as client:
            with pytest.raises(DecodeFailure):
                await client.fetch_once()

        assert metrics.get_counter("scrape_failure") == 1

    @pytest.mark.asyncio
    async def test_unreachable(self, upstream_server: UpstreamTestServer) -> None:
        """Test a refused connection raises NetworkFailure."""
        url = upstream_server.page_url
        await upstream_server.stop()

        async with ScrapeClient(url, timeout=1.0) as client:
            with pytest.raises(NetworkFailure):
                await client.fetch_once()

    @pytest.mark.asyncio
    async def test_session_reused(
        self,
        upstream_server: UpstreamTestServer,
        upstream_document: dict[str, Any],
    ) -> None:
        """Test repeated fetches each hit the page."""
        upstream_server.page_html = render_page(upstream_document)

        async with ScrapeClient(upstream_server.page_url, timeout=1.0) as client:
            first = await client.fetch_once()
            second = await client.fetch_once()

        assert upstream_server.page_requests == 2
        assert second.fetched_at >= first.fetched_at

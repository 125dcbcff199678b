"""Mock implementations for testing."""

from tests.mocks.sse_server import UpstreamTestServer, encode_event, render_page
from tests.mocks.upstream import MockScrapeClient, MockStreamClient, make_snapshot, wait_until


__all__ = [
    "MockScrapeClient",
    "MockStreamClient",
    "UpstreamTestServer",
    "encode_event",
    "make_snapshot",
    "render_page",
    "wait_until",
]

"""
One-shot page scraper for the upstream queue.

Fetches the rendered queue page and decodes the state blob the page
embeds as a JavaScript string assignment:

    var queueOnlineDataFirst = '{&quot;currentQueue&quot;: ...}';
"""

import html
import logging
import re

import aiohttp
from bs4 import BeautifulSoup

from queuewatch.config.constants import (
    BROWSER_HEADERS,
    DEFAULT_SCRAPE_TIMEOUT,
    EMBEDDED_STATE_MARKER,
    EMBEDDED_STATE_PATTERN,
)
from queuewatch.core.errors import (
    AcquisitionError,
    EmbeddedStateNotFound,
    NetworkFailure,
    ProtocolFailure,
)
from queuewatch.core.types import QueueSnapshot, SnapshotSource
from queuewatch.telemetry.metrics import MetricsCollector
from queuewatch.upstream.payload import decode_json, normalize_document
from queuewatch.utils.time import monotonic


logger = logging.getLogger(__name__)

_ASSIGNMENT = re.compile(EMBEDDED_STATE_PATTERN, re.DOTALL)


def extract_embedded_state(page: str) -> str:
    """
    Locate the embedded state assignment and return its unescaped JSON text.

    Args:
        page: Page markup.

    Returns:
        JSON text of the queue document.

    Raises:
        EmbeddedStateNotFound: If no script carries the assignment.
    """
    soup = BeautifulSoup(page, "html.parser")

    for script in soup.find_all("script"):
        body = script.string or script.get_text()
        if not body or EMBEDDED_STATE_MARKER not in body:
            continue

        match = _ASSIGNMENT.search(body)
        if match is None:
            logger.debug("[SCRAPE] Marker present but assignment pattern did not match")
            continue

        return unescape_js_string(match.group(1))

    raise EmbeddedStateNotFound(f"Embedded state '{EMBEDDED_STATE_MARKER}' not found in page")


def unescape_js_string(value: str) -> str:
    """Undo HTML entity and single-quote escaping of the assignment literal."""
    return html.unescape(value).replace("\\'", "'")


def parse_page(page: str) -> QueueSnapshot:
    """
    Decode the queue snapshot embedded in a page.

    Raises:
        EmbeddedStateNotFound: If the assignment is absent.
        DecodeFailure: If the assignment is not a valid queue document.
    """
    document = decode_json(extract_embedded_state(page), EMBEDDED_STATE_MARKER)
    return normalize_document(document, SnapshotSource.SCRAPED)


class ScrapeClient:
    """
    Fetch-and-parse client for the queue page.

    fetch_once() never touches the store: the caller decides what to do
    with the snapshot it returns.
    """

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_SCRAPE_TIMEOUT,
        verify_ssl: bool = True,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the scrape client.

        Args:
            url: Rendered queue page.
            timeout: Total seconds allowed for one fetch.
            verify_ssl: Verify the upstream certificate.
            metrics: Optional metrics collector.
        """
        self._url = url
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._metrics = metrics or MetricsCollector()
        self._session: aiohttp.ClientSession | None = None
        self._last_failure: AcquisitionError | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=BROWSER_HEADERS,
                connector=aiohttp.TCPConnector(
                    ssl=self._verify_ssl,
                    keepalive_timeout=30,
                ),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    @property
    def last_failure(self) -> AcquisitionError | None:
        return self._last_failure

    async def fetch_once(self) -> QueueSnapshot:
        """
        Fetch the page once and decode its embedded snapshot.

        Returns:
            Snapshot tagged scraped.

        Raises:
            NetworkFailure: Connection refused, reset or timed out.
            ProtocolFailure: Non-2xx status.
            EmbeddedStateNotFound: Page has no embedded state.
            DecodeFailure: Embedded state is not a valid queue document.
        """
        started = monotonic()
        try:
            page = await self._fetch_page()
            snapshot = parse_page(page)
        except AcquisitionError as e:
            self._last_failure = e
            self._metrics.increment_counter("scrape_failure")
            logger.warning(f"[SCRAPE] {e.describe()}")
            raise

        self._metrics.increment_counter("scrape_success")
        self._metrics.record_latency("scrape_fetch", monotonic() - started)
        logger.info(
            f"[SCRAPE] Queue {snapshot.current_queue} at counter {snapshot.counter_no}, "
            f"{snapshot.total_waiting} waiting"
        )
        return snapshot

    async def _fetch_page(self) -> str:
        session = await self._get_session()
        try:
            async with session.get(self._url, allow_redirects=True, max_redirects=5) as response:
                if not 200 <= response.status < 300:
                    raise ProtocolFailure(
                        f"Page returned HTTP {response.status} {response.reason}",
                        status=response.status,
                    )
                return await response.text(errors="replace")
        except TimeoutError as e:
            raise NetworkFailure(f"Page fetch timed out after {self._timeout:.1f}s") from e
        except (aiohttp.ClientError, OSError) as e:
            raise NetworkFailure(f"Page fetch failed: {e}") from e

    async def __aenter__(self) -> "ScrapeClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

"""
Push-stream client for the upstream queue.

Keeps one long-lived Server-Sent Events connection with:
- Explicit handshake timeout
- Frame-level resilience (malformed frames are skipped)
- Stall detection when frames stop arriving
"""

import asyncio
import logging

import aiohttp

from queuewatch.config.constants import (
    BROWSER_HEADERS,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_STALL_TIMEOUT,
    STREAM_ACCEPT,
    STREAM_READ_CHUNK,
)
from queuewatch.core.errors import (
    AcquisitionError,
    DecodeFailure,
    NetworkFailure,
    ProtocolFailure,
    StreamStalled,
)
from queuewatch.core.types import SnapshotHandler, StreamState
from queuewatch.telemetry.metrics import MetricsCollector
from queuewatch.upstream.payload import decode_stream_event
from queuewatch.upstream.sse import SseFrame, SseFrameParser
from queuewatch.utils.time import monotonic


logger = logging.getLogger(__name__)

_TERMINAL_STATES = frozenset({StreamState.STALLED, StreamState.CLOSED, StreamState.ERRORED})


class StreamClient:
    """
    Single stream connection to the upstream.

    State machine: IDLE -> CONNECTING -> OPEN -> (STALLED | CLOSED | ERRORED).
    Only an OPEN connection hands snapshots to the handler. Terminal states
    are left only by calling connect() again.
    """

    def __init__(
        self,
        url: str,
        handler: SnapshotHandler | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        stall_timeout: float = DEFAULT_STALL_TIMEOUT,
        verify_ssl: bool = True,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the stream client.

        Args:
            url: Event-stream endpoint.
            handler: Receives decoded snapshots while the connection is open.
            connect_timeout: Seconds allowed for the handshake.
            stall_timeout: Seconds allowed between frames.
            verify_ssl: Verify the upstream certificate.
            metrics: Optional metrics collector.
        """
        self._url = url
        self._handler = handler
        self._connect_timeout = connect_timeout
        self._stall_timeout = stall_timeout
        self._verify_ssl = verify_ssl
        self._metrics = metrics or MetricsCollector()

        self._state = StreamState.IDLE
        self._session: aiohttp.ClientSession | None = None
        self._response: aiohttp.ClientResponse | None = None
        self._parser = SseFrameParser()
        self._connect_task: asyncio.Task[None] | None = None
        self._reader: asyncio.Task[AcquisitionError] | None = None
        self._last_failure: AcquisitionError | None = None
        self._frames_received = 0
        self._frames_rejected = 0

    def set_handler(self, handler: SnapshotHandler | None) -> None:
        """Set the snapshot handler."""
        self._handler = handler

    @property
    def state(self) -> StreamState:
        """Get current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is StreamState.OPEN

    @property
    def frames_received(self) -> int:
        """Frames received since the client was created."""
        return self._frames_received

    @property
    def frames_rejected(self) -> int:
        """Frames skipped as malformed."""
        return self._frames_rejected

    @property
    def last_failure(self) -> AcquisitionError | None:
        return self._last_failure

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """
        Open the stream and return once the handshake is accepted.

        Concurrent callers share one attempt; an open connection is
        returned as-is.

        Raises:
            NetworkFailure: Connection refused, reset, timed out, or the
                attempt was aborted by disconnect().
            ProtocolFailure: Non-200 handshake status.
        """
        if self._state is StreamState.OPEN:
            return

        if self._connect_task is None or self._connect_task.done():
            self._connect_task = asyncio.create_task(self._open())

        # Cancelling this caller leaves the shared attempt running
        task = self._connect_task
        await asyncio.wait({task})

        if task.cancelled():
            raise NetworkFailure("Stream connect aborted")
        task.result()

    async def _open(self) -> None:
        """Perform one handshake."""
        self._state = StreamState.CONNECTING
        started = monotonic()

        session = aiohttp.ClientSession(
            headers={**BROWSER_HEADERS, "Accept": STREAM_ACCEPT},
            connector=aiohttp.TCPConnector(ssl=self._verify_ssl),
            timeout=aiohttp.ClientTimeout(total=None, sock_connect=self._connect_timeout),
        )
        logger.info(f"[STREAM] Connecting to {self._url}")

        try:
            response = await asyncio.wait_for(
                session.get(self._url),
                timeout=self._connect_timeout,
            )
        except TimeoutError as e:
            await self._fail(session, None)
            raise self._record_failure(
                NetworkFailure(f"Stream handshake timed out after {self._connect_timeout:.1f}s")
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            await self._fail(session, None)
            raise self._record_failure(NetworkFailure(f"Stream connection failed: {e}")) from e
        except asyncio.CancelledError:
            await self._release(session, None)
            self._state = StreamState.CLOSED
            raise

        if response.status != 200:
            await self._fail(session, response)
            raise self._record_failure(
                ProtocolFailure(
                    f"Stream handshake returned HTTP {response.status} {response.reason}",
                    status=response.status,
                )
            )

        self._session = session
        self._response = response
        self._parser.reset()
        self._state = StreamState.OPEN
        self._metrics.increment_counter("stream_connects")
        self._metrics.record_latency("stream_connect", monotonic() - started)
        self._reader = asyncio.create_task(self._read_loop(session, response))
        logger.info("[STREAM] Connected")

    async def _fail(
        self,
        session: aiohttp.ClientSession,
        response: aiohttp.ClientResponse | None,
    ) -> None:
        self._state = StreamState.ERRORED
        await self._release(session, response)

    def _record_failure(self, error: AcquisitionError) -> AcquisitionError:
        self._last_failure = error
        logger.warning(f"[STREAM] {error.describe()}")
        return error

    async def wait_closed(self) -> AcquisitionError:
        """
        Wait for the open connection to end.

        Returns:
            The failure that ended it (stall, upstream close or error).
        """
        reader = self._reader
        if reader is None:
            return self._last_failure or NetworkFailure("Stream is not connected")

        await asyncio.wait({reader})

        if reader.cancelled():
            return NetworkFailure("Stream disconnected")
        return reader.result()

    async def disconnect(self) -> None:
        """Tear down the connection; safe in any state."""
        if self._connect_task and not self._connect_task.done():
            self._connect_task.cancel()
            await asyncio.wait({self._connect_task})

        if self._reader and not self._reader.done():
            self._reader.cancel()
            await asyncio.wait({self._reader})

        if self._session or self._response:
            await self._release(self._session, self._response)

        if self._state is not StreamState.IDLE and self._state not in _TERMINAL_STATES:
            self._state = StreamState.CLOSED
            logger.info("[STREAM] Disconnected")

    async def _release(
        self,
        session: aiohttp.ClientSession | None,
        response: aiohttp.ClientResponse | None,
    ) -> None:
        """Close one connection's resources, leaving any newer one alone."""
        if response is not None:
            response.close()
        if session is not None and not session.closed:
            await session.close()

        if self._response is response:
            self._response = None
        if self._session is session:
            self._session = None

    # =========================================================================
    # Frame Processing
    # =========================================================================

    async def _read_loop(
        self,
        session: aiohttp.ClientSession,
        response: aiohttp.ClientResponse,
    ) -> AcquisitionError:
        """Read frames until the connection ends; return why it ended."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._stall_timeout
        error: AcquisitionError

        try:
            while True:
                remaining = deadline - loop.time()
                try:
                    if remaining <= 0:
                        raise TimeoutError
                    chunk = await asyncio.wait_for(
                        response.content.read(STREAM_READ_CHUNK),
                        timeout=remaining,
                    )
                except TimeoutError:
                    self._state = StreamState.STALLED
                    error = StreamStalled(f"No stream frame within {self._stall_timeout:.1f}s")
                    break

                if not chunk:
                    self._state = StreamState.CLOSED
                    error = NetworkFailure("Stream closed by upstream")
                    break

                frames = self._parser.feed(chunk)
                if frames:
                    deadline = loop.time() + self._stall_timeout
                for frame in frames:
                    self._handle_frame(frame)

        except (aiohttp.ClientError, OSError) as e:
            self._state = StreamState.ERRORED
            error = NetworkFailure(f"Stream read failed: {e}")

        finally:
            await self._release(session, response)

        return self._record_failure(error)

    def _handle_frame(self, frame: SseFrame) -> None:
        """Decode one frame and pass its snapshot on; never raises on bad data."""
        self._frames_received += 1
        self._metrics.increment_counter("frames_received")

        try:
            snapshot = decode_stream_event(frame.data)
        except DecodeFailure as e:
            self._frames_rejected += 1
            self._metrics.increment_counter("frames_rejected")
            logger.warning(f"[STREAM] Skipping malformed frame: {e} | {frame.data[:200]!r}")
            return

        if snapshot is None:
            logger.debug(f"[STREAM] Ignoring '{frame.event}' event without queue data")
            return

        if self._state is not StreamState.OPEN or self._handler is None:
            return

        self._handler(snapshot)

"""
Failover controller.

Coordinates the stream client, the page scraper and the simulated feed so
that exactly one acquisition mode is authorized to write at any time:

    streaming --(stream budget exhausted)--> scraping
    scraping  --(scrape budget exhausted)--> simulated
    scraping | simulated --(reconnect probe succeeds)--> streaming

Every phase change cancels the previous phase's tasks and bumps an epoch;
candidates carrying a stale epoch or an unauthorized source are discarded
by the write gate.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any

from queuewatch.config.settings import Settings
from queuewatch.core.errors import AcquisitionError
from queuewatch.core.types import (
    AcquisitionMode,
    ConnectionState,
    QueueSnapshot,
    RetryOutcome,
    SnapshotSource,
)
from queuewatch.simulation.feed import SimulatedFeed
from queuewatch.store.snapshot import SnapshotStore
from queuewatch.telemetry.metrics import MetricsCollector
from queuewatch.upstream.scrape import ScrapeClient
from queuewatch.upstream.stream import StreamClient
from queuewatch.utils.time import utc_now


logger = logging.getLogger(__name__)

_STREAM_MODES = frozenset({AcquisitionMode.STREAMING, AcquisitionMode.RECONNECTING})


class FailoverController:
    """
    Acquisition supervisor and sole writer of the snapshot store.

    Features:
    - Strict preference order: streaming, then scraping, then simulation
    - Exponential backoff between stream reconnects
    - Background reconnect probe while degraded
    - Epoch-gated writes so torn-down modes cannot write
    """

    def __init__(
        self,
        settings: Settings,
        store: SnapshotStore,
        stream: StreamClient | None = None,
        scraper: ScrapeClient | None = None,
        feed: SimulatedFeed | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the controller.

        Args:
            settings: Retry budgets, intervals and upstream URLs.
            store: Snapshot store this controller writes.
            stream: Stream client (default: built from settings).
            scraper: Page scraper (default: built from settings).
            feed: Simulated feed (default: built from settings).
            metrics: Metrics collector shared with the clients.
        """
        self._settings = settings
        self._store = store
        self._metrics = metrics or MetricsCollector()

        self._stream = stream or StreamClient(
            settings.stream_url,
            connect_timeout=settings.connect_timeout,
            stall_timeout=settings.stall_timeout,
            verify_ssl=settings.verify_ssl,
            metrics=self._metrics,
        )
        self._stream.set_handler(self._on_stream_snapshot)

        self._scraper = scraper or ScrapeClient(
            settings.page_url,
            timeout=settings.scrape_timeout,
            verify_ssl=settings.verify_ssl,
            metrics=self._metrics,
        )
        self._feed = feed or SimulatedFeed(
            start_queue=settings.simulation_start_queue,
            advance_probability=settings.simulation_advance_probability,
        )

        self._state = ConnectionState(mode=AcquisitionMode.STREAMING, mode_since=utc_now())
        self._epoch = 0
        self._authorized: SnapshotSource | None = SnapshotSource.STREAMING
        self._promote = asyncio.Event()
        self._supervisor: asyncio.Task[None] | None = None
        self._probe: asyncio.Task[None] | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        """Get the connection state (do not mutate)."""
        return self._state

    @property
    def mode(self) -> AcquisitionMode:
        return self._state.mode

    @property
    def connected(self) -> bool:
        """True while the stream is open and authorized."""
        return self._state.mode is AcquisitionMode.STREAMING and self._stream.is_open

    @property
    def is_running(self) -> bool:
        return self._supervisor is not None and not self._supervisor.done()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def stream(self) -> StreamClient:
        return self._stream

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def settings(self) -> Settings:
        return self._settings

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start acquisition in the background."""
        if self.is_running:
            return

        logger.info("[FAILOVER] Starting acquisition (streaming first)")
        self._supervisor = asyncio.create_task(self._run(), name="failover-supervisor")

    async def stop(self) -> None:
        """Stop acquisition and release every upstream resource."""
        if self._supervisor and not self._supervisor.done():
            self._supervisor.cancel()
            await asyncio.wait({self._supervisor})
        self._supervisor = None

        await self._stop_probe()
        await self._stream.disconnect()
        await self._scraper.close()
        logger.info("[FAILOVER] Acquisition stopped")

    async def _run(self) -> None:
        """Supervisor loop: run the active phase, then move to the mode it returns."""
        while True:
            mode = self._state.mode
            try:
                if mode is AcquisitionMode.SCRAPING:
                    next_mode = await self._scraping_phase()
                elif mode is AcquisitionMode.SIMULATED:
                    next_mode = await self._simulated_phase()
                else:
                    next_mode = await self._streaming_phase()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"[FAILOVER] Unexpected error in {mode.value} phase")
                await asyncio.sleep(self._settings.backoff_max)
                continue

            await self._transition(next_mode)

    # =========================================================================
    # Phases
    # =========================================================================

    async def _streaming_phase(self) -> AcquisitionMode:
        """Hold the stream open; reconnect with backoff until the budget runs out."""
        budget = self._settings.stream_retry_budget

        while True:
            self._promote.clear()
            try:
                await self._stream.connect()
            except AcquisitionError as e:
                failure = e
            else:
                self._state.mode = AcquisitionMode.STREAMING
                self._state.consecutive_failures = 0
                logger.info("[FAILOVER] Streaming")
                failure = await self._stream.wait_closed()

            await self._stream.disconnect()
            self._record_failure(failure, SnapshotSource.STREAMING, budget)

            if self._state.consecutive_failures >= budget:
                logger.warning(f"[FAILOVER] Stream retry budget ({budget}) exhausted")
                return AcquisitionMode.SCRAPING

            self._state.mode = AcquisitionMode.RECONNECTING
            delay = self._settings.backoff_delay(self._state.consecutive_failures)
            logger.info(f"[FAILOVER] Reconnecting in {delay:.1f}s")
            await self._wait(delay)

    async def _scraping_phase(self) -> AcquisitionMode:
        """Poll the page until its budget runs out or the stream comes back."""
        epoch = self._epoch
        budget = self._settings.scrape_retry_budget
        self._start_probe()

        while True:
            try:
                snapshot = await self._scraper.fetch_once()
            except AcquisitionError as e:
                self._record_failure(e, SnapshotSource.SCRAPED, budget)
                # A stream reopened during the fetch wins over the budget
                if self._promote.is_set():
                    return AcquisitionMode.STREAMING
                if self._state.consecutive_failures >= budget:
                    logger.warning(f"[FAILOVER] Scrape retry budget ({budget}) exhausted")
                    return AcquisitionMode.SIMULATED
            else:
                if self._promote.is_set():
                    self._discard(snapshot, "promotion pending")
                    return AcquisitionMode.STREAMING
                if self._accept(snapshot, epoch):
                    self._state.consecutive_failures = 0

            if await self._wait(self._settings.scrape_interval):
                return AcquisitionMode.STREAMING

    async def _simulated_phase(self) -> AcquisitionMode:
        """Tick the simulated feed until the stream comes back."""
        epoch = self._epoch
        self._feed.seed(self._store.snapshot)
        self._start_probe()

        self._accept(self._feed.snapshot(), epoch)

        while True:
            if await self._wait(self._settings.simulation_tick_interval):
                return AcquisitionMode.STREAMING

            self._metrics.increment_counter("simulated_ticks")
            self._accept(self._feed.tick(), epoch)

    async def _transition(self, mode: AcquisitionMode) -> None:
        """Tear down the current phase and authorize the next one."""
        previous = self._state.mode

        await self._stop_probe()
        if mode not in _STREAM_MODES:
            await self._stream.disconnect()

        self._epoch += 1
        self._authorized = SnapshotSource.STREAMING if mode in _STREAM_MODES else mode.source
        self._promote.clear()

        self._state.mode = mode
        self._state.mode_since = utc_now()
        self._state.consecutive_failures = 0
        self._state.transitions += 1
        self._metrics.increment_counter("mode_transitions")

        logger.warning(f"[FAILOVER] Mode {previous.value} -> {mode.value}")

    # =========================================================================
    # Reconnect Probe
    # =========================================================================

    def _start_probe(self) -> None:
        if self._probe is None or self._probe.done():
            self._probe = asyncio.create_task(self._probe_loop(), name="stream-probe")

    async def _stop_probe(self) -> None:
        if self._probe and not self._probe.done():
            self._probe.cancel()
            await asyncio.wait({self._probe})
        self._probe = None

    async def _probe_loop(self) -> None:
        """Periodically try the stream; request promotion on success."""
        while True:
            await asyncio.sleep(self._settings.reconnect_probe_interval)
            try:
                await self._stream.connect()
            except AcquisitionError as e:
                self._state.stream_failures += 1
                logger.info(f"[FAILOVER] Reconnect probe failed: {e.describe()}")
                continue

            logger.info("[FAILOVER] Reconnect probe succeeded")
            self._promote.set()
            return

    async def _wait(self, delay: float) -> bool:
        """
        Sleep for delay seconds.

        Returns:
            True if woken early by a promotion request.
        """
        if self._promote.is_set():
            return True
        try:
            await asyncio.wait_for(self._promote.wait(), timeout=delay)
        except TimeoutError:
            return False
        return True

    # =========================================================================
    # Write Gate
    # =========================================================================

    def _on_stream_snapshot(self, snapshot: QueueSnapshot) -> bool:
        """Handler given to the stream client."""
        return self._accept(snapshot, self._epoch)

    def _accept(self, snapshot: QueueSnapshot, epoch: int) -> bool:
        """
        Write a candidate if its mode is still the active one.

        Args:
            snapshot: Validated candidate.
            epoch: Epoch of the phase that produced it.

        Returns:
            True if written.
        """
        if epoch != self._epoch:
            self._discard(snapshot, f"stale epoch {epoch} (current {self._epoch})")
            return False
        if snapshot.source is not self._authorized:
            self._discard(snapshot, f"source not authorized in {self._state.mode.value} mode")
            return False

        self._write(snapshot)
        return True

    def _write(self, snapshot: QueueSnapshot) -> None:
        previous = self._store.snapshot
        if previous is not None and snapshot.fetched_at < previous.fetched_at:
            snapshot = replace(snapshot, fetched_at=previous.fetched_at)

        self._store.write(snapshot)
        self._metrics.increment_counter("snapshots_written")
        logger.debug(
            f"[FAILOVER] Wrote {snapshot.source.value} snapshot: queue {snapshot.current_queue} "
            f"at counter {snapshot.counter_no}, {snapshot.total_waiting} waiting"
        )

    def _discard(self, snapshot: QueueSnapshot, reason: str) -> None:
        self._metrics.increment_counter("snapshots_discarded")
        logger.debug(f"[FAILOVER] Discarded {snapshot.source.value} snapshot: {reason}")

    def _record_failure(
        self,
        error: AcquisitionError,
        source: SnapshotSource,
        budget: int,
    ) -> None:
        self._state.consecutive_failures += 1
        self._state.last_error = error.describe()
        if source is SnapshotSource.STREAMING:
            self._state.stream_failures += 1
        else:
            self._state.scrape_failures += 1

        logger.warning(
            f"[FAILOVER] {source.value} failure "
            f"{self._state.consecutive_failures}/{budget}: {error.describe()}"
        )

    # =========================================================================
    # Operator Actions
    # =========================================================================

    async def retry_now(self) -> RetryOutcome:
        """
        Try the stream immediately, falling back to one scrape.

        A successful stream connect promotes the controller to streaming.
        A successful scrape is written only while no stream is authorized.

        Returns:
            Which method succeeded, with per-method error messages.
        """
        logger.info("[FAILOVER] Manual reconnect requested")
        errors: dict[str, str] = {}

        try:
            await self._stream.connect()
        except AcquisitionError as e:
            errors[SnapshotSource.STREAMING.value] = str(e)
        else:
            if self._state.mode is not AcquisitionMode.STREAMING:
                self._promote.set()
            return RetryOutcome(method=SnapshotSource.STREAMING, errors=errors)

        try:
            snapshot = await self._scraper.fetch_once()
        except AcquisitionError as e:
            errors[SnapshotSource.SCRAPED.value] = str(e)
            return RetryOutcome(method=None, errors=errors)

        if self._state.mode is AcquisitionMode.STREAMING:
            self._discard(snapshot, "stream is authorized")
        else:
            self._write(snapshot)
            self._feed.seed(snapshot)
        return RetryOutcome(method=SnapshotSource.SCRAPED, errors=errors)

    def status(self) -> dict[str, Any]:
        """Get connection health for the status endpoint."""
        return {
            **self._state.to_dict(),
            "connected": self.connected,
            "streamState": self._stream.state.name.lower(),
            "epoch": self._epoch,
            "retryBudgets": {
                "stream": self._settings.stream_retry_budget,
                "scrape": self._settings.scrape_retry_budget,
            },
        }

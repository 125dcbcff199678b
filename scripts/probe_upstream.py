#!/usr/bin/env python3
"""
Upstream Probe Script.

Checks both real upstream sources once, without starting the monitor:
fetches the queue page and decodes its embedded state, then opens the
event stream and prints the first snapshot it delivers.
"""

import asyncio
import sys
from pathlib import Path

# Add src to path for direct execution
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import orjson

from queuewatch.config.settings import get_settings
from queuewatch.core.errors import AcquisitionError
from queuewatch.core.types import QueueSnapshot
from queuewatch.upstream.scrape import ScrapeClient
from queuewatch.upstream.stream import StreamClient


def print_snapshot(snapshot: QueueSnapshot) -> None:
    print(f"  Current queue:  {snapshot.current_queue}")
    print(f"  Counter:        {snapshot.counter_no}")
    print(f"  Waiting:        {snapshot.total_waiting}")
    for entry in snapshot.waiting[:5]:
        print(f"    - {entry.queue_no}")
    print()


async def probe_stream(url: str, timeout: float) -> QueueSnapshot | None:
    """Open the stream and wait for its first snapshot."""
    first: asyncio.Future[QueueSnapshot] = asyncio.get_running_loop().create_future()

    def handler(snapshot: QueueSnapshot) -> bool:
        if not first.done():
            first.set_result(snapshot)
        return True

    client = StreamClient(url, handler=handler, connect_timeout=timeout, stall_timeout=timeout)
    try:
        await client.connect()
        print("Stream connected, waiting for a frame...")
        return await asyncio.wait_for(first, timeout=timeout)
    except TimeoutError:
        print(f"No snapshot within {timeout:.0f}s ({client.frames_received} frames seen)")
        return None
    finally:
        await client.disconnect()


async def main() -> int:
    """Probe both upstream sources."""
    print("=" * 60)
    print("  UPSTREAM PROBE")
    print("=" * 60)
    print()

    # Load settings
    try:
        settings = get_settings()
    except Exception as e:
        print(f"Error loading settings: {e}")
        return 1

    results: dict[str, object] = {}

    # Page scrape
    print(f"Fetching {settings.page_url} ...")
    async with ScrapeClient(
        settings.page_url,
        timeout=settings.scrape_timeout,
        verify_ssl=settings.verify_ssl,
    ) as scraper:
        try:
            snapshot = await scraper.fetch_once()
        except AcquisitionError as e:
            print(f"  Scrape failed: {e.describe()}")
            results["scraped"] = None
        else:
            print_snapshot(snapshot)
            results["scraped"] = snapshot.to_dict()

    # Event stream
    print(f"Connecting to {settings.stream_url} ...")
    try:
        streamed = await probe_stream(settings.stream_url, settings.connect_timeout)
    except AcquisitionError as e:
        print(f"  Stream failed: {e.describe()}")
        streamed = None
    if streamed is not None:
        print_snapshot(streamed)
    results["streaming"] = streamed.to_dict() if streamed else None

    # Summary
    print("=" * 60)
    print("  SUMMARY")
    print("=" * 60)
    print()
    for source, value in results.items():
        print(f"  {source:<10} {'OK' if value else 'FAILED'}")
    print()

    export_path = Path("probe.json")
    export_path.write_bytes(orjson.dumps(results, option=orjson.OPT_INDENT_2))
    print(f"Exported to: {export_path}")

    return 0 if any(results.values()) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

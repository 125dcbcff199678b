"""Upstream module: stream and page clients for the queue source."""

from queuewatch.upstream.payload import decode_stream_event, normalize_document
from queuewatch.upstream.scrape import ScrapeClient, extract_embedded_state, parse_page
from queuewatch.upstream.sse import SseFrame, SseFrameParser
from queuewatch.upstream.stream import StreamClient


__all__ = [
    "ScrapeClient",
    "SseFrame",
    "SseFrameParser",
    "StreamClient",
    "decode_stream_event",
    "extract_embedded_state",
    "normalize_document",
    "parse_page",
]

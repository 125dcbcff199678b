"""
Local upstream server for client tests.

Serves an event stream at /stream and the queue page at /page on a
loopback port, so the real aiohttp clients can be exercised end to end.
"""

import asyncio
import socket
from typing import Any

import orjson
from aiohttp import web


def encode_event(document: dict[str, Any]) -> bytes:
    """Encode a queue document as the upstream does: a JSON string inside JSON."""
    payload = {"manageListQueue": orjson.dumps(document).decode()}
    return b"data: " + orjson.dumps(payload) + b"\n\n"


def render_page(document: dict[str, Any] | None) -> str:
    """Render a queue page embedding the document as an HTML-escaped JS string."""
    if document is None:
        script = "var somethingElse = 1;"
    else:
        escaped = orjson.dumps(document).decode().replace('"', "&quot;")
        script = f"var queueOnlineDataFirst = '{escaped}';"
    return (
        "<html><head><title>Queue</title></head><body>"
        '<div id="queue"></div>'
        f"<script>{script}\nrender(queueOnlineDataFirst);</script>"
        "</body></html>"
    )


class UpstreamTestServer:
    """
    Scriptable loopback upstream.

    Stream connections stay open until close_streams() or stop(); chunks
    passed to send() go to every open connection.
    """

    def __init__(self) -> None:
        """Initialize server."""
        self.stream_status = 200
        self.page_status = 200
        self.page_html = render_page(None)
        self.stream_connections = 0
        self.page_requests = 0
        self.hold_handshakes = False
        self._stopping = False
        self._handshake_release = asyncio.Event()
        self._queues: list[asyncio.Queue[bytes | None]] = []
        self._runner: web.AppRunner | None = None
        self._port = 0

    async def start(self) -> None:
        """Start listening on a free loopback port."""
        app = web.Application()
        app.router.add_get("/stream", self._handle_stream)
        app.router.add_get("/page", self._handle_page)

        self._runner = web.AppRunner(app)
        await self._runner.setup()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        self._port = sock.getsockname()[1]
        await web.SockSite(self._runner, sock).start()

    async def stop(self) -> None:
        """End open streams and shut down."""
        self._stopping = True
        self.release_handshakes()
        self.close_streams()
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @property
    def stream_url(self) -> str:
        return f"http://127.0.0.1:{self._port}/stream"

    @property
    def page_url(self) -> str:
        return f"http://127.0.0.1:{self._port}/page"

    @property
    def open_streams(self) -> int:
        return len(self._queues)

    def send(self, chunk: bytes) -> None:
        """Write raw bytes to every open stream."""
        for queue in self._queues:
            queue.put_nowait(chunk)

    def send_document(self, document: dict[str, Any]) -> None:
        """Send one queue document as a stream event."""
        self.send(encode_event(document))

    def release_handshakes(self) -> None:
        """Let held stream handshakes answer."""
        self._handshake_release.set()

    def close_streams(self) -> None:
        """End every open stream cleanly (EOF at the client)."""
        for queue in self._queues:
            queue.put_nowait(None)

    async def _handle_stream(self, request: web.Request) -> web.StreamResponse:
        self.stream_connections += 1
        if self.hold_handshakes:
            await self._handshake_release.wait()
        if self._stopping:
            return web.Response(status=503, text="shutting down")
        if self.stream_status != 200:
            return web.Response(status=self.stream_status, text="unavailable")

        response = web.StreamResponse(
            headers={"Content-Type": "text/event-stream", "Cache-Control": "no-cache"}
        )
        queue: asyncio.Queue[bytes | None] = asyncio.Queue()
        self._queues.append(queue)
        try:
            await response.prepare(request)
            while (chunk := await queue.get()) is not None:
                await response.write(chunk)
        except ConnectionResetError:
            pass
        finally:
            self._queues.remove(queue)
        return response

    async def _handle_page(self, request: web.Request) -> web.Response:
        self.page_requests += 1
        return web.Response(
            status=self.page_status,
            text=self.page_html,
            content_type="text/html",
        )

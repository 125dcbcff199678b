"""
Entry point for the queue monitor.

Usage:
    python -m queuewatch
    queuewatch  # if installed via pip
"""

import asyncio
import logging
import socket
import sys
from pathlib import Path


# Try to use uvloop for better performance
try:
    import uvloop

    UVLOOP_AVAILABLE = True
except ImportError:
    UVLOOP_AVAILABLE = False


logger = logging.getLogger("queuewatch")


def bind_socket(host: str, port: int) -> socket.socket:
    """
    Bind the API listening socket.

    Raises:
        OSError: If the address cannot be bound.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success).
    """
    import uvicorn

    from queuewatch import __version__
    from queuewatch.api.server import create_app
    from queuewatch.config.settings import get_settings
    from queuewatch.telemetry.logger import setup_logging

    print(
        f"""
╔═══════════════════════════════════════════════════════════════╗
║     QUEUE MONITOR v{__version__:<37}      ║
║                                                               ║
║     Stream -> page scrape -> simulated feed                   ║
╚═══════════════════════════════════════════════════════════════╝
    """
    )

    # Load settings
    try:
        settings = get_settings()
    except Exception as e:
        print(f"Configuration error: {e}")
        return 1

    use_uvloop = settings.use_uvloop and UVLOOP_AVAILABLE

    print("Configuration:")
    print(f"  Stream:         {settings.stream_url}")
    print(f"  Page:           {settings.page_url}")
    print(f"  Listen:         {settings.host}:{settings.port}")
    print(
        f"  Retry budgets:  stream {settings.stream_retry_budget}, "
        f"scrape {settings.scrape_retry_budget}"
    )
    print(f"  Scrape every:   {settings.scrape_interval:.0f}s")
    print(f"  Probe every:    {settings.reconnect_probe_interval:.0f}s")
    print(f"  uvloop:         {'Enabled' if use_uvloop else 'Disabled'}")
    print()

    async_logger = setup_logging(
        settings.log_level,
        Path(settings.log_file) if settings.log_file else None,
    )

    try:
        try:
            sock = bind_socket(settings.host, settings.port)
        except OSError as e:
            logger.critical(f"[MAIN] Cannot bind {settings.host}:{settings.port}: {e}")
            return 1

        config = uvicorn.Config(
            create_app(settings),
            log_config=None,
            access_log=False,
            log_level=settings.log_level.lower(),
        )
        server = uvicorn.Server(config)
        logger.info(f"[MAIN] Listening on http://{settings.host}:{settings.port}")

        async def run_server() -> int:
            try:
                await server.serve(sockets=[sock])
                return 0
            except Exception:
                logger.exception("[MAIN] Server crashed")
                return 1
            finally:
                sock.close()

        if use_uvloop:
            return uvloop.run(run_server())
        return asyncio.run(run_server())

    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 0

    finally:
        async_logger.stop()


if __name__ == "__main__":
    sys.exit(main())

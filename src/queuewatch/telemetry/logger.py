"""
Logging setup.

Records are put on a bounded queue by the calling coroutine and written
to the console (and optionally a file) by a listener thread, so handler
I/O never runs on the event loop.
"""

import logging
import sys
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import Full, Queue

from queuewatch.config.constants import LOG_DATE_FORMAT, LOG_FORMAT, MAX_LOG_QUEUE_SIZE


_QUIET_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio", "uvicorn.access")


class DroppingQueueHandler(QueueHandler):
    """QueueHandler that counts records it cannot enqueue instead of raising."""

    def __init__(self, queue: "Queue[logging.LogRecord]") -> None:
        super().__init__(queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except Full:
            self.dropped += 1


def build_handlers(level: int, log_file: Path | None = None) -> list[logging.Handler]:
    """
    Create the output handlers drained by the listener thread.

    The console follows the configured level; the file, when given,
    receives everything down to DEBUG.
    """
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    handlers: list[logging.Handler] = [console]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


class AsyncLogger:
    """
    Queue handler on one logger plus the listener thread draining it.

    Logging calls only enqueue; a full queue drops the record and counts
    it rather than blocking the event loop.
    """

    def __init__(
        self,
        name: str = "",
        level: int = logging.INFO,
        log_file: Path | None = None,
    ) -> None:
        """
        Initialize async logger.

        Args:
            name: Logger to attach to ("" for the root logger).
            level: Logging level.
            log_file: Optional file path for logging.
        """
        self._logger = logging.getLogger(name)
        self._level = level
        self._log_file = log_file
        self._handler: DroppingQueueHandler | None = None
        self._listener: QueueListener | None = None

    @property
    def logger(self) -> logging.Logger:
        """Get the underlying logger."""
        return self._logger

    @property
    def running(self) -> bool:
        return self._listener is not None

    @property
    def dropped(self) -> int:
        """Records lost to a full queue."""
        return self._handler.dropped if self._handler else 0

    def start(self) -> None:
        """Attach the queue handler and start the listener thread."""
        if self._listener is not None:
            return

        queue: Queue[logging.LogRecord] = Queue(maxsize=MAX_LOG_QUEUE_SIZE)
        self._handler = DroppingQueueHandler(queue)
        self._listener = QueueListener(
            queue,
            *build_handlers(self._level, self._log_file),
            respect_handler_level=True,
        )

        self._logger.addHandler(self._handler)
        self._logger.setLevel(self._level)
        self._listener.start()

    def stop(self) -> None:
        """Drain queued records, stop the listener and detach from the logger."""
        if self._listener is None:
            return

        self._listener.stop()
        for handler in self._listener.handlers:
            handler.close()
        if self._handler is not None:
            self._logger.removeHandler(self._handler)

        self._listener = None

    def __enter__(self) -> "AsyncLogger":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
) -> AsyncLogger:
    """
    Route every logger in the process through one AsyncLogger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional log file path.

    Returns:
        Started AsyncLogger attached to the root logger.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    async_logger = AsyncLogger("", level=numeric_level, log_file=log_file)
    async_logger.start()

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return async_logger

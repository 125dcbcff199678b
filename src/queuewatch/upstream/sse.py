"""
Incremental Server-Sent Events frame splitter.

Bytes arrive in arbitrary chunks; SseFrameParser buffers them and yields
complete events once their terminating blank line has been seen.
"""

import codecs
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class SseFrame:
    """One dispatched event."""

    data: str
    event: str = "message"
    id: str | None = None


class SseFrameParser:
    """
    Splits a text/event-stream body into frames.

    Follows the event-stream line rules: data lines are joined with
    newlines, "event" and "id" fields are honored, comment lines (leading
    colon) are ignored, and CRLF, CR or LF all end a line.
    """

    __slots__ = ("_buffer", "_data", "_decoder", "_event", "_id", "_pending_cr")

    def __init__(self) -> None:
        self._buffer = ""
        self._data: list[str] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._event: str | None = None
        self._id: str | None = None
        self._pending_cr = False

    def feed(self, chunk: bytes | str) -> list[SseFrame]:
        """
        Add a chunk and return the frames it completes.

        Args:
            chunk: Raw bytes (UTF-8, may split a character) or text.

        Returns:
            Completed frames, possibly empty.
        """
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)

        # A CR at the end of the previous chunk may pair with an LF here
        if not chunk:
            return []
        if self._pending_cr and chunk.startswith("\n"):
            chunk = chunk[1:]
        self._pending_cr = chunk.endswith("\r")

        text = (self._buffer + chunk).replace("\r\n", "\n").replace("\r", "\n")
        lines = text.split("\n")
        self._buffer = lines.pop()

        frames: list[SseFrame] = []
        for line in lines:
            frame = self._process_line(line)
            if frame is not None:
                frames.append(frame)
        return frames

    def _process_line(self, line: str) -> SseFrame | None:
        if not line:
            return self._dispatch()

        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            self._id = value
        # "retry" and unknown fields are ignored
        return None

    def _dispatch(self) -> SseFrame | None:
        if not self._data:
            self._event = None
            return None

        frame = SseFrame(
            data="\n".join(self._data),
            event=self._event or "message",
            id=self._id,
        )
        self._data = []
        self._event = None
        return frame

    def reset(self) -> None:
        """Drop any partial input."""
        self._buffer = ""
        self._data = []
        self._event = None
        self._decoder.reset()
        self._id = None
        self._pending_cr = False

    @property
    def pending(self) -> bool:
        """True when a partial line or event is buffered."""
        return bool(self._buffer or self._data)

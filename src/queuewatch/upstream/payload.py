"""
Normalization of upstream queue documents.

The stream and the page embed the same JSON document. Both clients hand
the decoded document to normalize_document(), so a snapshot is validated
the same way whichever source produced it.

Upstream document (abridged):
    {"currentQueue": {"queueNo": "4015", "counterNo": "2", ...},
     "queue": [{"queueNo": "4016", "customerName": "...", ...}, ...]}

The flat form {"currentQueue": 4015, "counterNo": "2", "waiting": [4016]}
is accepted as well. Missing or unusable numbers are treated as absent,
never as queue number 0.
"""

import logging
from datetime import datetime
from typing import Any

import orjson
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from queuewatch.config.constants import STREAM_FRAME_KEY
from queuewatch.core.errors import DecodeFailure
from queuewatch.core.types import QueueEntry, QueueSnapshot, SnapshotSource
from queuewatch.utils.time import utc_now


logger = logging.getLogger(__name__)

_DOCUMENT_KEYS = frozenset({"currentQueue", "queue", "waiting"})


def coerce_queue_no(value: Any) -> int | None:
    """
    Convert an upstream queue number to a positive int.

    Zero-padded strings ("0042") are accepted. Zero, negatives, blanks
    and anything non-numeric mean "unknown".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            return None
        value = int(text)
    if isinstance(value, int) and value > 0:
        return value
    return None


def coerce_counter_no(value: Any) -> str | None:
    """Counter ids are short codes; numbers are kept as their text."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


class UpstreamEntry(BaseModel):
    """A queue entry as sent by the upstream; unknown fields are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    queue_no: int | None = Field(default=None, alias="queueNo")
    counter_no: str | None = Field(default=None, alias="counterNo")

    @model_validator(mode="before")
    @classmethod
    def wrap_bare_number(cls, data: Any) -> Any:
        """Accept a bare number in place of an entry object."""
        if isinstance(data, (int, float, str)) and not isinstance(data, bool):
            return {"queueNo": data}
        return data

    @field_validator("queue_no", mode="before")
    @classmethod
    def validate_queue_no(cls, v: Any) -> int | None:
        return coerce_queue_no(v)

    @field_validator("counter_no", mode="before")
    @classmethod
    def validate_counter_no(cls, v: Any) -> str | None:
        return coerce_counter_no(v)

    @property
    def metadata(self) -> dict[str, Any]:
        """Fields other than queueNo and counterNo."""
        return dict(self.model_extra or {})


class UpstreamDocument(BaseModel):
    """The queue document shared by the stream and the page."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    current_queue: UpstreamEntry | None = Field(default=None, alias="currentQueue")
    counter_no: str | None = Field(default=None, alias="counterNo")
    waiting: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("queue", "waiting"),
    )

    @field_validator("counter_no", mode="before")
    @classmethod
    def validate_counter_no(cls, v: Any) -> str | None:
        return coerce_counter_no(v)

    @field_validator("waiting", mode="before")
    @classmethod
    def validate_waiting(cls, v: Any) -> list[Any]:
        if v is None:
            return []
        return v


def _waiting_entries(raw_entries: list[Any]) -> tuple[QueueEntry, ...]:
    """Validate waiting entries one by one, dropping unusable ones."""
    entries: list[QueueEntry] = []
    for raw in raw_entries:
        try:
            entry = UpstreamEntry.model_validate(raw)
        except ValidationError:
            logger.debug(f"Dropping malformed waiting entry: {raw!r}")
            continue
        if entry.queue_no is None:
            logger.debug(f"Dropping waiting entry without a number: {raw!r}")
            continue
        metadata = entry.metadata
        if entry.counter_no is not None:
            metadata["counterNo"] = entry.counter_no
        entries.append(QueueEntry(queue_no=entry.queue_no, metadata=metadata))
    return tuple(entries)


def normalize_document(
    raw: Any,
    source: SnapshotSource,
    fetched_at: datetime | None = None,
) -> QueueSnapshot:
    """
    Validate an upstream document and build a snapshot.

    Args:
        raw: Decoded JSON document.
        source: Acquisition mode that produced it.
        fetched_at: Production time (default: now).

    Returns:
        Normalized snapshot.

    Raises:
        DecodeFailure: If the document is not an object, carries none of
            the queue fields, or fails validation.
    """
    if not isinstance(raw, dict):
        raise DecodeFailure(f"Queue document must be an object, got {type(raw).__name__}")

    if not _DOCUMENT_KEYS.intersection(raw):
        raise DecodeFailure(f"Queue document has no queue fields: {sorted(raw)[:10]}")

    try:
        document = UpstreamDocument.model_validate(raw)
    except ValidationError as e:
        raise DecodeFailure(f"Invalid queue document ({e.error_count()} errors)") from e

    current = document.current_queue
    current_no = current.queue_no if current else None
    counter_no = (current.counter_no if current else None) or document.counter_no

    return QueueSnapshot(
        current_queue=current_no,
        counter_no=counter_no,
        waiting=_waiting_entries(document.waiting),
        fetched_at=fetched_at or utc_now(),
        source=source,
    )


def decode_json(text: str | bytes, what: str = "payload") -> Any:
    """
    Parse JSON with orjson.

    Raises:
        DecodeFailure: If the text is not valid JSON.
    """
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError as e:
        raise DecodeFailure(f"Invalid JSON in {what}: {e}") from e


def decode_stream_event(data: str) -> QueueSnapshot | None:
    """
    Decode the data of one stream event.

    The event is a JSON object; the queue document sits under
    manageListQueue, itself JSON-encoded as a string.

    Args:
        data: Event data (joined data lines).

    Returns:
        Snapshot tagged streaming, or None for events that carry no
        queue document (heartbeats, other event types).

    Raises:
        DecodeFailure: If the event or the nested document is malformed.
    """
    if not data.strip():
        return None

    event = decode_json(data, "stream event")
    if not isinstance(event, dict) or STREAM_FRAME_KEY not in event:
        return None

    document = event[STREAM_FRAME_KEY]
    if isinstance(document, (str, bytes)):
        document = decode_json(document, STREAM_FRAME_KEY)

    return normalize_document(document, SnapshotSource.STREAMING)

"""
Acquisition error taxonomy.

Every failure an upstream client can report is an AcquisitionError. All of
them are recoverable: the failover controller catches them and feeds its
retry and downgrade logic. None reach API callers.
"""


class AcquisitionError(Exception):
    """Base exception for upstream acquisition failures."""

    kind = "acquisition"

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    def describe(self) -> str:
        """Short reason recorded as the controller's last error."""
        return f"{self.kind}: {self}"


class NetworkFailure(AcquisitionError):
    """Connection refused, reset or timed out."""

    kind = "network"


class StreamStalled(NetworkFailure):
    """Stream stayed open but stopped delivering frames."""

    kind = "stalled"


class ProtocolFailure(AcquisitionError):
    """Unexpected status code or missing expected document."""

    kind = "protocol"


class EmbeddedStateNotFound(ProtocolFailure):
    """Page fetched but the embedded state assignment is absent."""

    kind = "not_found"


class DecodeFailure(AcquisitionError):
    """Payload present but not parseable into a queue document."""

    kind = "decode"

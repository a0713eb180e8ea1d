"""Fatal error conditions raised by the node runtime."""

from dataclasses import dataclass


class GlomersError(Exception):
    """Base class for every error raised by glomers."""


@dataclass(eq=False)
class MalformedMessageError(GlomersError):
    """A line on the input stream could not be decoded as a message.

    Note: the harness contract is broken at this point, so there is no
    resynchronization; the process stops.
    """

    reason: str
    line: bytes = b""

    def __str__(self) -> str:
        return f"malformed message ({self.reason}): {self.line[:200]!r}"


@dataclass(eq=False)
class ProtocolViolationError(GlomersError):
    """A well-formed message broke the cluster protocol (e.g. topology without our id)."""

    reason: str
    node_id: str | None = None

    def __str__(self) -> str:
        if self.node_id:
            return f"protocol violation on {self.node_id}: {self.reason}"
        return f"protocol violation: {self.reason}"

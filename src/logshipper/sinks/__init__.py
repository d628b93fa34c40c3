from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

from ..core.events import LogEvent


@dataclass(frozen=True)
class StreamDescription:
    """One stream as reported by ``describe_streams``."""

    stream_name: str
    upload_sequence_token: str | None = None


@dataclass(frozen=True)
class AppendResult:
    """Outcome of a successful append: the token for the next call."""

    next_token: str | None


@runtime_checkable
class LogStreamSink(Protocol):
    """Async interface to a remote append-only log-stream service.

    Implementations raise ``SinkError`` (or a subclass) for failures the
    service reports. Any other exception is treated the same way by callers.
    """

    async def describe_streams(
        self, group: str, prefix: str
    ) -> list[StreamDescription]:
        """List streams in ``group`` whose names start with ``prefix``."""
        ...

    async def create_stream(self, group: str, stream: str) -> None:
        ...

    async def append_events(
        self,
        group: str,
        stream: str,
        token: str | None,
        events: Sequence[LogEvent],
    ) -> AppendResult:
        """Append ``events`` after the tail identified by ``token``."""
        ...


__all__ = [
    "AppendResult",
    "LogStreamSink",
    "StreamDescription",
]

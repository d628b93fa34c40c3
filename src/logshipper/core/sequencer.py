"""
Sequence-token state and the one-time stream initializer.

An append-only stream accepts a batch only when the caller presents the
token returned by the previous append. ``SequenceState`` holds that token;
``initialize_stream`` seeds it by discovering (or creating) the target
stream before the dispatcher starts.
"""

from __future__ import annotations

from ..sinks import LogStreamSink, StreamDescription
from . import diagnostics
from .errors import InitializationError, StreamAlreadyExistsError


class SequenceState:
    """Current continuation token. Only the dispatcher writes it."""

    __slots__ = ("_token",)

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    @property
    def token(self) -> str | None:
        return self._token

    def advance(self, token: str | None) -> None:
        self._token = token

    def __repr__(self) -> str:
        return f"SequenceState(token={self._token!r})"


def _match(streams: list[StreamDescription], stream: str) -> StreamDescription | None:
    # The describe call filters by prefix; "app" also matches "app-worker"
    for item in streams:
        if item.stream_name == stream:
            return item
    return None


async def _describe(
    sink: LogStreamSink, group: str, stream: str
) -> StreamDescription | None:
    try:
        streams = await sink.describe_streams(group, stream)
    except Exception as exc:
        raise InitializationError(
            "log stream discovery failed", group=group, stream=stream
        ) from exc
    return _match(streams, stream)


async def initialize_stream(
    sink: LogStreamSink, group: str, stream: str
) -> str | None:
    """Find or create ``stream`` in ``group`` and return its current token.

    Returns None when the stream is new (or has never been written to): the
    first append is then made without a token.

    Raises:
        InitializationError: the group is missing or unreachable, or the
            stream could not be created.
    """
    found = await _describe(sink, group, stream)
    if found is not None:
        return found.upload_sequence_token

    try:
        await sink.create_stream(group, stream)
    except StreamAlreadyExistsError:
        # Another writer created it between our describe and create
        diagnostics.debug(
            "initializer",
            "stream created concurrently; re-describing",
            group=group,
            stream=stream,
        )
        found = await _describe(sink, group, stream)
        if found is None:
            raise InitializationError(
                "log stream reported as existing but not found",
                group=group,
                stream=stream,
            ) from None
        return found.upload_sequence_token
    except Exception as exc:
        raise InitializationError(
            "log stream creation failed", group=group, stream=stream
        ) from exc
    return None

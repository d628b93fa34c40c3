"""
Error taxonomy for the shipper.

Only ``InitializationError`` and ``FormattingError`` ever reach calling code.
Append failures are wrapped in ``AppendError`` and recovered by the
dispatcher; sink-level errors describe what the remote service reported so
the dispatcher can decide how to treat them.
"""

from __future__ import annotations

from typing import Any


class LogShipperError(Exception):
    """Base class for all shipper errors.

    Extra keyword arguments are kept in ``context`` for diagnostics.
    """

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in sorted(self.context.items()))
        return f"{self.message} ({details})"


class InitializationError(LogShipperError):
    """Stream discovery or creation failed; the dispatcher is not started."""


class FormattingError(LogShipperError):
    """A record could not be turned into a message string."""


class AppendError(LogShipperError):
    """An append call failed. Retried on the next tick, never surfaced."""


class SinkError(LogShipperError):
    """Error reported by a remote log-stream sink."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.code = code


class StreamAlreadyExistsError(SinkError):
    """``create_stream`` raced with another writer that created it first."""


class SequenceTokenConflictError(SinkError):
    """The token presented with an append was not the stream's current one."""

    def __init__(
        self,
        message: str,
        *,
        expected_token: str | None = None,
        code: str | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, code=code, **context)
        self.expected_token = expected_token


class BatchAlreadyAcceptedError(SequenceTokenConflictError):
    """The sink already holds this batch (a previous append did land)."""


__all__ = [
    "AppendError",
    "BatchAlreadyAcceptedError",
    "FormattingError",
    "InitializationError",
    "LogShipperError",
    "SequenceTokenConflictError",
    "SinkError",
    "StreamAlreadyExistsError",
]

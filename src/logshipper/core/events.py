"""
Log event model for the shipper pipeline.

A ``LogEvent`` is the unit that travels from producer call sites through the
event queue into a batch. It carries only what the remote append call needs:
the formatted message and a millisecond timestamp.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any


def now_millis() -> int:
    """Current wall-clock time in integer milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


@dataclass(frozen=True, slots=True)
class LogEvent:
    """Immutable formatted log event."""

    message: str
    timestamp: int

    def __post_init__(self) -> None:
        if not isinstance(self.message, str):
            raise TypeError("LogEvent message must be a string")
        if self.timestamp < 0:
            raise ValueError("LogEvent timestamp must be non-negative")

    @classmethod
    def now(cls, message: str) -> LogEvent:
        return cls(message=message, timestamp=now_millis())

    def to_wire(self) -> dict[str, Any]:
        """Mapping in the shape expected by ``PutLogEvents``."""
        return {"timestamp": self.timestamp, "message": self.message}

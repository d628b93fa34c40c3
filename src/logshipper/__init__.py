"""
Public entrypoints for logshipper.

Application code logs synchronously through ``StreamHook.fire`` (or the stdlib
``logging`` bridge); a background dispatcher batches the events and appends
them to a remote append-only log stream such as AWS CloudWatch Logs.
"""

from __future__ import annotations

from ._version import __version__
from .core.errors import (
    AppendError,
    FormattingError,
    InitializationError,
    LogShipperError,
    SinkError,
)
from .core.events import LogEvent
from .core.hook import StreamHook
from .core.settings import Settings
from .core.stdlib_bridge import (
    StreamHookHandler,
    disable_stdlib_bridge,
    enable_stdlib_bridge,
)

__all__ = [
    "AppendError",
    "FormattingError",
    "InitializationError",
    "LogEvent",
    "LogShipperError",
    "Settings",
    "SinkError",
    "StreamHook",
    "StreamHookHandler",
    "VERSION",
    "__version__",
    "disable_stdlib_bridge",
    "enable_stdlib_bridge",
]

VERSION = __version__

"""
Bridge from the stdlib ``logging`` module into a ``StreamHook``.

``StreamHookHandler`` is the logging-framework hook: the framework calls it
synchronously once per record, it formats and queues the record, and it
returns immediately.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .errors import FormattingError

if TYPE_CHECKING:
    from .hook import StreamHook

# Loggers used while appending; forwarding them would feed the queue from
# inside the dispatcher
EXCLUDED_LOGGER_PREFIXES: tuple[str, ...] = (
    "logshipper",
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
)


def _is_excluded(name: str) -> bool:
    return any(
        name == prefix or name.startswith(prefix + ".")
        for prefix in EXCLUDED_LOGGER_PREFIXES
    )


class StreamHookHandler(logging.Handler):
    """``logging.Handler`` that forwards records to a ``StreamHook``.

    Formatting uses this handler's formatter when one is set, otherwise the
    hook's own formatter. Formatting failures go to ``handleError`` like any
    other handler.
    """

    def __init__(self, hook: StreamHook, level: int = logging.NOTSET) -> None:
        super().__init__(level=level)
        self.hook = hook

    def emit(self, record: logging.LogRecord) -> None:
        if _is_excluded(record.name):
            return
        try:
            if self.formatter is not None:
                try:
                    message = self.format(record)
                except Exception as exc:
                    raise FormattingError(
                        "failed to format log record", logger=record.name
                    ) from exc
                self.hook.fire(message)
            else:
                self.hook.fire(record)
        except FormattingError:
            self.handleError(record)


def enable_stdlib_bridge(
    hook: StreamHook,
    *,
    logger: logging.Logger | None = None,
    level: int = logging.NOTSET,
    remove_existing_handlers: bool = False,
    formatter: logging.Formatter | None = None,
    set_logger_level: bool = False,
) -> StreamHookHandler:
    """Attach a ``StreamHookHandler`` to ``logger`` (root by default).

    With the default ``NOTSET`` level every record that reaches the handler
    is forwarded, matching ``StreamHook.levels``. The logger's own level is
    left alone, so records it filters never reach any handler; pass
    ``set_logger_level=True`` to lower it to ``level`` (or DEBUG).
    """
    target = logger or logging.getLogger()
    if remove_existing_handlers:
        for existing in list(target.handlers):
            target.removeHandler(existing)
    handler = StreamHookHandler(hook, level=level)
    if formatter is not None:
        handler.setFormatter(formatter)
    target.addHandler(handler)
    if set_logger_level:
        target.setLevel(level or min(hook.levels))
    return handler


def disable_stdlib_bridge(
    handler: StreamHookHandler, *, logger: logging.Logger | None = None
) -> None:
    (logger or logging.getLogger()).removeHandler(handler)

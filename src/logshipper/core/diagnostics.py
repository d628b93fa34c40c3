"""
Structured internal diagnostics for non-fatal shipper errors.

Diagnostics are JSON lines written to stderr, never through the stdlib
``logging`` tree: a record logged there could be picked up by the shipper's
own handler and re-enter the queue.

Emission is off unless ``LOGSHIPPER_CORE__INTERNAL_LOGGING_ENABLED`` is true.
The setting is read once and cached in ``_internal_logging_enabled``; tests
reset the cache to ``None``.
"""

from __future__ import annotations

import json
import sys
import threading
import time
from typing import Any, Callable

_internal_logging_enabled: bool | None = None

# Minimum seconds between two emissions sharing a rate-limit key
_RATE_LIMIT_WINDOW_SECONDS = 5.0

_writer: Callable[[dict[str, Any]], None] | None = None
_last_emit: dict[str, float] = {}
_lock = threading.Lock()


def _is_enabled() -> bool:
    global _internal_logging_enabled
    if _internal_logging_enabled is None:
        try:
            from .settings import Settings

            _internal_logging_enabled = bool(
                Settings().core.internal_logging_enabled
            )
        except Exception:
            _internal_logging_enabled = False
    return _internal_logging_enabled


def _default_writer(payload: dict[str, Any]) -> None:
    sys.stderr.write(json.dumps(payload, default=str) + "\n")
    sys.stderr.flush()


def set_writer_for_tests(writer: Callable[[dict[str, Any]], None] | None) -> None:
    """Redirect diagnostics payloads; pass None to restore stderr."""
    global _writer
    _writer = writer
    with _lock:
        _last_emit.clear()


def _allowed(key: str | None) -> bool:
    if key is None:
        return True
    now = time.monotonic()
    with _lock:
        last = _last_emit.get(key)
        if last is not None and (now - last) < _RATE_LIMIT_WINDOW_SECONDS:
            return False
        _last_emit[key] = now
        return True


def emit(
    level: str,
    component: str,
    message: str,
    *,
    _rate_limit_key: str | None = None,
    **fields: Any,
) -> None:
    if not _is_enabled():
        return
    if not _allowed(_rate_limit_key):
        return
    payload: dict[str, Any] = {
        "timestamp": time.time(),
        "level": level,
        "logger": "logshipper.diagnostics",
        "component": component,
        "message": message,
    }
    payload.update(fields)
    writer = _writer or _default_writer
    try:
        writer(payload)
    except Exception:
        # Diagnostics must never break the caller
        pass


def warn(component: str, message: str, **fields: Any) -> None:
    emit("WARN", component, message, **fields)


def debug(component: str, message: str, **fields: Any) -> None:
    emit("DEBUG", component, message, **fields)

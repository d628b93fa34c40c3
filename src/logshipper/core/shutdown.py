"""Exit-time shutdown for running hooks.

This module provides:
- Atexit handler that stops every registered hook with a final flush
- WeakSet-based hook registration to avoid memory leaks

The handler is best-effort: it attempts one last append per hook but will
not block past each hook's stop timeout.
"""

from __future__ import annotations

import atexit
import weakref
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .hook import StreamHook


_shutdown_in_progress: bool = False
_registered_hooks: weakref.WeakSet[Any] = weakref.WeakSet()


def register_hook(hook: StreamHook) -> None:
    """Register a hook to be stopped at interpreter exit."""
    _registered_hooks.add(hook)


def unregister_hook(hook: StreamHook) -> None:
    """Unregister a hook; called by ``StreamHook.stop`` to avoid double stops."""
    _registered_hooks.discard(hook)


def registered_hooks() -> list[StreamHook]:
    return list(_registered_hooks)


def _atexit_handler() -> None:
    """Stop all registered hooks. Called by atexit; never raises."""
    global _shutdown_in_progress

    if _shutdown_in_progress:
        return
    _shutdown_in_progress = True

    # Snapshot first: stop() unregisters while we iterate
    try:
        hooks = list(_registered_hooks)
    except Exception:  # pragma: no cover - rare GC race
        return

    for hook in hooks:
        try:
            hook.stop(flush=True)
        except Exception:
            pass  # Best effort - don't crash on exit


atexit.register(_atexit_handler)

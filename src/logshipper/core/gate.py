"""Runtime pause/resume switch consulted by the dispatcher on every tick."""

from __future__ import annotations

import threading


class SendingGate:
    """Thread-safe, idempotent on/off flag for forwarding.

    Closing the gate suppresses append calls only; producers keep enqueueing
    and the dispatcher keeps accumulating the pending batch.
    """

    def __init__(self, *, open: bool = True) -> None:
        self._open = threading.Event()
        if open:
            self._open.set()

    @property
    def is_open(self) -> bool:
        return self._open.is_set()

    def pause(self) -> None:
        self._open.clear()

    def resume(self) -> None:
        self._open.set()

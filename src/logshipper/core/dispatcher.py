"""
Batch dispatcher: the single background worker that ships queued events.

The dispatcher moves events from the event queue into a pending batch and,
on every tick of a fixed timer, appends the whole pending batch to the
remote stream using the current sequence token.

State machine:

- IDLE: waiting for the next tick. Queued events are absorbed into the
  pending batch in enqueue order; this does not change state.
- FLUSHING: one append call in flight. Entered on a tick when the gate is
  open and the pending batch is non-empty.
  - success: adopt the returned token, remove the sent events, back to IDLE
  - failure: keep both the pending batch and the token, back to IDLE; the
    same events are retried on the next tick

Append failures never propagate out of the dispatcher. All batch and token
mutation happens on the dispatcher's own task, one call at a time.
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Callable

from ..metrics.metrics import MetricsCollector
from ..sinks import AppendResult, LogStreamSink
from . import diagnostics
from .concurrency import NonBlockingRingQueue
from .errors import AppendError, BatchAlreadyAcceptedError, SequenceTokenConflictError
from .events import LogEvent
from .gate import SendingGate
from .sequencer import SequenceState


class DispatcherStatus(str, Enum):
    IDLE = "idle"
    FLUSHING = "flushing"


class BatchDispatcher:
    """Drains the event queue on a timer and appends batches to the sink."""

    def __init__(
        self,
        *,
        sink: LogStreamSink,
        group: str,
        stream: str,
        queue: NonBlockingRingQueue[LogEvent],
        sequence: SequenceState,
        gate: SendingGate,
        flush_interval_seconds: float = 0.2,
        absorb_interval_seconds: float = 0.02,
        append_timeout_seconds: float | None = None,
        refresh_token_on_conflict: bool = False,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink
        self._group = group
        self._stream = stream
        self._queue = queue
        self._sequence = sequence
        self._gate = gate
        self._flush_interval = flush_interval_seconds
        self._absorb_interval = min(absorb_interval_seconds, flush_interval_seconds)
        self._append_timeout = append_timeout_seconds
        self._refresh_on_conflict = refresh_token_on_conflict
        self._metrics = metrics
        self._clock = clock
        self._pending: list[LogEvent] = []
        self._status = DispatcherStatus.IDLE

    @property
    def status(self) -> DispatcherStatus:
        return self._status

    @property
    def pending(self) -> list[LogEvent]:
        """Copy of the pending batch, oldest first."""
        return list(self._pending)

    @property
    def sequence_token(self) -> str | None:
        return self._sequence.token

    def absorb(self) -> int:
        """Move every queued event to the end of the pending batch."""
        drained = self._queue.drain()
        self._pending.extend(drained)
        return len(drained)

    async def tick(self) -> bool:
        """Run one timer tick. Returns True when a batch was appended."""
        self.absorb()
        if not self._gate.is_open or not self._pending:
            return False

        self._status = DispatcherStatus.FLUSHING
        batch = list(self._pending)
        try:
            sent = await self._append(batch)
        finally:
            self._status = DispatcherStatus.IDLE
            # Events that arrived during the call go after the retained batch
            self.absorb()
        return sent

    async def _append(self, batch: list[LogEvent]) -> bool:
        start = time.perf_counter()
        try:
            result = await self._call_sink(batch)
        except AppendError as exc:
            cause = exc.__cause__
            self._record_failure(cause or exc, time.perf_counter() - start)
            if self._refresh_on_conflict and isinstance(
                cause, SequenceTokenConflictError
            ):
                return self._recover_conflict(cause, len(batch))
            return False

        self._sequence.advance(result.next_token)
        del self._pending[: len(batch)]
        if self._metrics is not None:
            self._metrics.record_append_success(
                batch_size=len(batch),
                latency_seconds=time.perf_counter() - start,
            )
        return True

    async def _call_sink(self, batch: list[LogEvent]) -> AppendResult:
        call = self._sink.append_events(
            self._group, self._stream, self._sequence.token, batch
        )
        try:
            if self._append_timeout is not None:
                return await asyncio.wait_for(call, timeout=self._append_timeout)
            return await call
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise AppendError(
                "append failed",
                group=self._group,
                stream=self._stream,
                batch_size=len(batch),
            ) from exc

    def _recover_conflict(
        self, exc: SequenceTokenConflictError, batch_size: int
    ) -> bool:
        if exc.expected_token is None:
            return False
        self._sequence.advance(exc.expected_token)
        if isinstance(exc, BatchAlreadyAcceptedError):
            # The previous attempt landed; only its token reply was lost
            del self._pending[:batch_size]
            diagnostics.debug(
                "dispatcher",
                "batch already accepted; dropped from pending",
                batch_size=batch_size,
            )
            return True
        diagnostics.debug("dispatcher", "sequence token refreshed after conflict")
        return False

    def _record_failure(self, exc: BaseException, latency_seconds: float) -> None:
        error_type = type(exc).__name__
        if self._metrics is not None:
            self._metrics.record_append_failure(
                error_type=error_type, latency_seconds=latency_seconds
            )
        diagnostics.warn(
            "dispatcher",
            "append failed; batch retained for next tick",
            error_type=error_type,
            error=str(exc),
            pending=len(self._pending),
            _rate_limit_key=f"append:{error_type}",
        )

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Tick until ``stop_event`` is set; a failing tick never ends the loop."""
        stop_event = stop_event or asyncio.Event()
        next_tick = self._clock() + self._flush_interval
        try:
            while not stop_event.is_set():
                now = self._clock()
                if now >= next_tick:
                    try:
                        await self.tick()
                    except Exception as exc:
                        self._report_tick_error(exc)
                    next_tick += self._flush_interval
                    if next_tick <= self._clock():
                        next_tick = self._clock() + self._flush_interval
                    continue
                timeout = min(self._absorb_interval, next_tick - now)
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass
                self.absorb()
        except asyncio.CancelledError:
            return

    def _report_tick_error(self, exc: BaseException) -> None:
        error_type = type(exc).__name__
        if self._metrics is not None:
            self._metrics.record_append_failure(
                error_type=error_type, latency_seconds=0.0
            )
        diagnostics.warn(
            "dispatcher",
            "tick failed; batch retained for next tick",
            error_type=error_type,
            error=str(exc),
            pending=len(self._pending),
            _rate_limit_key=f"tick:{error_type}",
        )

"""
Producer-facing hook: cheap synchronous ``fire`` plus a background dispatcher.

A ``StreamHook`` owns everything it mutates (event queue, sequence token,
sending gate, dispatcher); there is no process-wide state besides the weak
registry used for exit-time shutdown. The dispatcher runs on a dedicated
daemon thread with its own event loop, so producers on any thread (or inside
any event loop) never wait on network I/O.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
import types
from typing import Union

from ..metrics.metrics import MetricsCollector
from ..sinks import LogStreamSink
from . import diagnostics, shutdown
from .concurrency import NonBlockingRingQueue
from .dispatcher import BatchDispatcher
from .errors import FormattingError, InitializationError
from .events import LogEvent
from .gate import SendingGate
from .sequencer import SequenceState, initialize_stream
from .settings import Settings

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Every level is forwarded; filtering belongs to the host's logger config
ALL_LEVELS: tuple[int, ...] = (
    logging.CRITICAL,
    logging.ERROR,
    logging.WARNING,
    logging.INFO,
    logging.DEBUG,
)

Record = Union[logging.LogRecord, str]


class StreamHook:
    """Buffered, fire-and-forget shipper for one remote log stream.

    Construction discovers or creates the stream synchronously and raises
    ``InitializationError`` when that fails; the dispatcher is only started
    once the stream is known to be reachable.

    Example:
        hook = StreamHook("/app/prod", "web-1")
        enable_stdlib_bridge(hook)
        logging.getLogger(__name__).info("started")
        ...
        hook.stop()
    """

    def __init__(
        self,
        group: str | None = None,
        stream: str | None = None,
        sink: LogStreamSink | None = None,
        *,
        settings: Settings | None = None,
        formatter: logging.Formatter | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        settings = settings or Settings()
        core = settings.core
        group = group or settings.cloudwatch.log_group_name
        stream = stream or settings.cloudwatch.log_stream_name
        if not group or not stream:
            raise InitializationError(
                "log group and stream names are required", group=group, stream=stream
            )
        if sink is None:
            from ..sinks.cloudwatch import CloudWatchLogsSink, CloudWatchSinkConfig

            sink = CloudWatchLogsSink(
                CloudWatchSinkConfig.from_settings(settings.cloudwatch)
            )

        self.group = group
        self.stream = stream
        self._sink = sink
        self._formatter = formatter or logging.Formatter(DEFAULT_FORMAT)
        self._metrics = metrics or MetricsCollector(enabled=core.enable_metrics)
        self._stop_timeout = core.stop_timeout_seconds
        self._queue: NonBlockingRingQueue[LogEvent] = NonBlockingRingQueue(
            core.queue_capacity
        )
        self._gate = SendingGate()
        self._sequence = SequenceState()
        self._dispatcher = BatchDispatcher(
            sink=sink,
            group=group,
            stream=stream,
            queue=self._queue,
            sequence=self._sequence,
            gate=self._gate,
            flush_interval_seconds=core.flush_interval_seconds,
            absorb_interval_seconds=core.absorb_interval_seconds,
            append_timeout_seconds=core.append_timeout_seconds,
            refresh_token_on_conflict=core.refresh_token_on_conflict,
            metrics=self._metrics,
        )

        self._loop = asyncio.new_event_loop()
        self._stop_event = asyncio.Event()
        self._thread = threading.Thread(
            target=self._thread_main,
            name=f"logshipper-{stream}",
            daemon=True,
        )
        self._run_future: concurrent.futures.Future[None] | None = None
        self._closed = False
        self._start()
        if core.atexit_stop_enabled:
            shutdown.register_hook(self)

    # Lifecycle

    def _thread_main(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()

    def _start(self) -> None:
        self._thread.start()
        init = asyncio.run_coroutine_threadsafe(
            initialize_stream(self._sink, self.group, self.stream), self._loop
        )
        try:
            token = init.result()
        except BaseException:
            self._halt_loop()
            raise
        self._sequence.advance(token)
        self._run_future = asyncio.run_coroutine_threadsafe(
            self._dispatcher.run(self._stop_event), self._loop
        )

    def _halt_loop(self, timeout: float | None = None) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)

    def stop(self, *, flush: bool = True, timeout: float | None = None) -> None:
        """Stop the dispatcher, optionally attempting one last flush.

        Best-effort: events still buffered after the final flush attempt
        (or when it fails, times out or the hook is paused) are lost.
        """
        if self._closed:
            return
        self._closed = True
        shutdown.unregister_hook(self)
        timeout = self._stop_timeout if timeout is None else timeout

        self._loop.call_soon_threadsafe(self._stop_event.set)
        stopped = True
        if self._run_future is not None:
            try:
                self._run_future.result(timeout)
            except concurrent.futures.TimeoutError:
                # An append is still in flight; a second one must not start
                stopped = False
                diagnostics.warn("hook", "dispatcher did not stop in time")
                self._run_future.cancel()
            except Exception as exc:
                diagnostics.warn(
                    "hook",
                    "dispatcher ended with error",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
        if flush and stopped:
            final = asyncio.run_coroutine_threadsafe(
                self._dispatcher.tick(), self._loop
            )
            try:
                final.result(timeout)
            except concurrent.futures.TimeoutError:
                final.cancel()
                diagnostics.warn("hook", "final flush timed out")
            except Exception as exc:
                diagnostics.warn(
                    "hook",
                    "final flush failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
        self._halt_loop(timeout)

    def close(self) -> None:
        self.stop()

    def __enter__(self) -> StreamHook:
        return self

    def __exit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc: BaseException | None,
        _tb: types.TracebackType | None,
    ) -> None:
        self.stop()

    # Producer side

    @property
    def levels(self) -> tuple[int, ...]:
        return ALL_LEVELS

    def format(self, record: Record) -> str:
        if isinstance(record, str):
            return record
        try:
            return self._formatter.format(record)
        except Exception as exc:
            raise FormattingError(
                "failed to format log record",
                logger=getattr(record, "name", None),
            ) from exc

    def fire(self, record: Record) -> None:
        """Format ``record`` and queue it for shipping.

        Never blocks and never reports a full queue: overflow events are
        dropped and only counted. Raises ``FormattingError`` when the record
        cannot be formatted; nothing is queued in that case.
        """
        message = self.format(record)
        # Stamped under the queue lock so batches are in timestamp order
        if self._queue.try_enqueue_with(lambda: LogEvent.now(message)):
            self._metrics.record_enqueued()
        else:
            self._metrics.record_dropped()

    # Gate

    def pause(self) -> None:
        self._gate.pause()

    def resume(self) -> None:
        self._gate.resume()

    @property
    def is_sending(self) -> bool:
        return self._gate.is_open

    # Introspection

    @property
    def is_running(self) -> bool:
        return (
            not self._closed
            and self._run_future is not None
            and not self._run_future.done()
        )

    @property
    def sequence_token(self) -> str | None:
        return self._sequence.token

    @property
    def pending_count(self) -> int:
        """Events buffered but not yet appended (queue plus pending batch)."""
        return self._queue.qsize() + len(self._dispatcher.pending)

    @property
    def dropped_count(self) -> int:
        return self._metrics.snapshot().events_dropped

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

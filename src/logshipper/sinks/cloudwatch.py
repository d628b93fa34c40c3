"""
AWS CloudWatch Logs adapter for the ``LogStreamSink`` protocol.

boto3 clients are synchronous; every call runs on a daemon thread owned by the
sink, one call at a time, and its outcome is handed back to the calling event
loop. The default executor is not used: ``concurrent.futures`` refuses new work
once interpreter shutdown begins, which would make the exit-time flush fail.
"""

from __future__ import annotations

import asyncio
import queue
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Sequence, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.errors import (
    BatchAlreadyAcceptedError,
    SequenceTokenConflictError,
    SinkError,
    StreamAlreadyExistsError,
)
from ..core.events import LogEvent
from ..core.settings import CloudWatchSettings
from . import AppendResult, StreamDescription


@dataclass
class CloudWatchSinkConfig:
    """Client settings for ``CloudWatchLogsSink``."""

    region: str | None = None
    endpoint_url: str | None = None

    @classmethod
    def from_settings(cls, settings: CloudWatchSettings) -> CloudWatchSinkConfig:
        return cls(region=settings.region, endpoint_url=settings.endpoint_url)


def _expected_token(exc: ClientError) -> str | None:
    # Modeled error members are parsed to the top level; older responses
    # nest them under "Error"
    token = exc.response.get("expectedSequenceToken")
    if token is None:
        token = exc.response.get("Error", {}).get("expectedSequenceToken")
    return token


def _translate_client_error(exc: ClientError, operation: str) -> SinkError:
    error = exc.response.get("Error", {})
    code = error.get("Code", "")
    message = error.get("Message", str(exc))
    if code == "ResourceAlreadyExistsException":
        return StreamAlreadyExistsError(message, code=code, operation=operation)
    if code == "InvalidSequenceTokenException":
        return SequenceTokenConflictError(
            message,
            code=code,
            expected_token=_expected_token(exc),
            operation=operation,
        )
    if code == "DataAlreadyAcceptedException":
        return BatchAlreadyAcceptedError(
            message,
            code=code,
            expected_token=_expected_token(exc),
            operation=operation,
        )
    return SinkError(message, code=code, operation=operation)


def _settle(
    future: asyncio.Future[Any], result: Any, error: BaseException | None
) -> None:
    # A cancelled wait (append timeout) leaves nobody to receive the outcome
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


_Job = Tuple[
    asyncio.AbstractEventLoop, asyncio.Future[Any], Callable[..., Any], Dict[str, Any]
]


class _CallThread:
    """One daemon thread that runs blocking client calls in submission order."""

    def __init__(self, name: str) -> None:
        self._jobs: queue.SimpleQueue[_Job] = queue.SimpleQueue()
        self._thread = threading.Thread(target=self._work, name=name, daemon=True)
        self._thread.start()

    def _work(self) -> None:
        while True:
            loop, future, func, kwargs = self._jobs.get()
            result: Any = None
            error: BaseException | None = None
            try:
                result = func(**kwargs)
            except BaseException as exc:
                error = exc
            try:
                loop.call_soon_threadsafe(_settle, future, result, error)
            except RuntimeError:
                pass  # Loop already closed; the caller gave up waiting

    async def run(self, func: Callable[..., Any], /, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        self._jobs.put((loop, future, func, kwargs))
        return await future


class CloudWatchLogsSink:
    """CloudWatch Logs stream operations backed by a boto3 ``logs`` client."""

    name = "cloudwatch"

    def __init__(
        self,
        config: CloudWatchSinkConfig | None = None,
        *,
        client: Any = None,
    ) -> None:
        self._config = config or CloudWatchSinkConfig()
        self._client = client
        # Started up front: no new threads can be created once the
        # interpreter is exiting, and the exit-time flush still needs one
        self._calls = _CallThread("logshipper-cloudwatch")

    @property
    def client(self) -> Any:
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self._config.region:
                kwargs["region_name"] = self._config.region
            if self._config.endpoint_url:
                kwargs["endpoint_url"] = self._config.endpoint_url
            self._client = boto3.client("logs", **kwargs)
        return self._client

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        method = getattr(self.client, operation)
        try:
            return await self._calls.run(method, **kwargs)
        except ClientError as exc:
            raise _translate_client_error(exc, operation) from exc
        except BotoCoreError as exc:
            raise SinkError(str(exc), operation=operation) from exc

    async def describe_streams(
        self, group: str, prefix: str
    ) -> list[StreamDescription]:
        response = await self._call(
            "describe_log_streams",
            logGroupName=group,
            logStreamNamePrefix=prefix,
        )
        return [
            StreamDescription(
                stream_name=item["logStreamName"],
                upload_sequence_token=item.get("uploadSequenceToken"),
            )
            for item in response.get("logStreams", [])
        ]

    async def create_stream(self, group: str, stream: str) -> None:
        await self._call(
            "create_log_stream",
            logGroupName=group,
            logStreamName=stream,
        )

    async def append_events(
        self,
        group: str,
        stream: str,
        token: str | None,
        events: Sequence[LogEvent],
    ) -> AppendResult:
        kwargs: dict[str, Any] = {
            "logGroupName": group,
            "logStreamName": stream,
            "logEvents": [event.to_wire() for event in events],
        }
        if token is not None:
            kwargs["sequenceToken"] = token
        response = await self._call("put_log_events", **kwargs)
        return AppendResult(next_token=response.get("nextSequenceToken"))


__all__ = ["CloudWatchLogsSink", "CloudWatchSinkConfig"]

from __future__ import annotations

import asyncio
import threading
from typing import Iterator

import boto3
import pytest
from botocore.stub import Stubber

from logshipper.core.errors import (
    BatchAlreadyAcceptedError,
    SequenceTokenConflictError,
    SinkError,
    StreamAlreadyExistsError,
)
from logshipper.core.events import LogEvent
from logshipper.core.sequencer import initialize_stream
from logshipper.core.settings import CloudWatchSettings
from logshipper.sinks import LogStreamSink
from logshipper.sinks.cloudwatch import CloudWatchLogsSink, CloudWatchSinkConfig


@pytest.fixture
def client_and_stub() -> Iterator[tuple[object, Stubber]]:
    client = boto3.client(
        "logs",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stub:
        yield client, stub
        stub.assert_no_pending_responses()


def test_sink_satisfies_protocol() -> None:
    assert isinstance(CloudWatchLogsSink(client=object()), LogStreamSink)


def test_config_from_settings() -> None:
    settings = CloudWatchSettings(region="eu-west-1", endpoint_url="http://localhost:4566")
    config = CloudWatchSinkConfig.from_settings(settings)
    assert config.region == "eu-west-1"
    assert config.endpoint_url == "http://localhost:4566"


@pytest.mark.asyncio
async def test_describe_maps_streams(client_and_stub: tuple[object, Stubber]) -> None:
    client, stub = client_and_stub
    stub.add_response(
        "describe_log_streams",
        {
            "logStreams": [
                {"logStreamName": "web", "uploadSequenceToken": "tok"},
                {"logStreamName": "web-2"},
            ]
        },
        {"logGroupName": "app", "logStreamNamePrefix": "web"},
    )
    sink = CloudWatchLogsSink(client=client)

    streams = await sink.describe_streams("app", "web")

    assert [(s.stream_name, s.upload_sequence_token) for s in streams] == [
        ("web", "tok"),
        ("web-2", None),
    ]


@pytest.mark.asyncio
async def test_append_omits_token_when_absent(
    client_and_stub: tuple[object, Stubber],
) -> None:
    client, stub = client_and_stub
    events = [LogEvent("a", 1), LogEvent("b", 2)]
    stub.add_response(
        "put_log_events",
        {"nextSequenceToken": "next-1"},
        {
            "logGroupName": "app",
            "logStreamName": "web",
            "logEvents": [
                {"timestamp": 1, "message": "a"},
                {"timestamp": 2, "message": "b"},
            ],
        },
    )
    stub.add_response(
        "put_log_events",
        {"nextSequenceToken": "next-2"},
        {
            "logGroupName": "app",
            "logStreamName": "web",
            "logEvents": [{"timestamp": 1, "message": "a"}],
            "sequenceToken": "next-1",
        },
    )
    sink = CloudWatchLogsSink(client=client)

    first = await sink.append_events("app", "web", None, events)
    second = await sink.append_events("app", "web", first.next_token, events[:1])

    assert first.next_token == "next-1"
    assert second.next_token == "next-2"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("code", "expected_type"),
    [
        ("InvalidSequenceTokenException", SequenceTokenConflictError),
        ("DataAlreadyAcceptedException", BatchAlreadyAcceptedError),
    ],
)
async def test_token_errors_carry_expected_token(
    client_and_stub: tuple[object, Stubber],
    code: str,
    expected_type: type[SequenceTokenConflictError],
) -> None:
    client, stub = client_and_stub
    stub.add_client_error(
        "put_log_events",
        service_error_code=code,
        service_message="bad token",
        modeled_fields={"expectedSequenceToken": "expected"},
    )
    sink = CloudWatchLogsSink(client=client)

    with pytest.raises(expected_type) as info:
        await sink.append_events("app", "web", "stale", [LogEvent("a", 1)])

    assert type(info.value) is expected_type
    assert info.value.expected_token == "expected"
    assert info.value.code == code


@pytest.mark.asyncio
async def test_other_client_errors_become_sink_errors(
    client_and_stub: tuple[object, Stubber],
) -> None:
    client, stub = client_and_stub
    stub.add_client_error(
        "describe_log_streams",
        service_error_code="ResourceNotFoundException",
        service_message="The specified log group does not exist.",
    )
    sink = CloudWatchLogsSink(client=client)

    with pytest.raises(SinkError) as info:
        await sink.describe_streams("missing", "web")

    assert info.value.code == "ResourceNotFoundException"
    assert info.value.context["operation"] == "describe_log_streams"


@pytest.mark.asyncio
async def test_initializer_creates_stream_through_cloudwatch(
    client_and_stub: tuple[object, Stubber],
) -> None:
    client, stub = client_and_stub
    stub.add_response(
        "describe_log_streams",
        {"logStreams": []},
        {"logGroupName": "app", "logStreamNamePrefix": "web"},
    )
    stub.add_response(
        "create_log_stream",
        {},
        {"logGroupName": "app", "logStreamName": "web"},
    )
    sink = CloudWatchLogsSink(client=client)

    assert await initialize_stream(sink, "app", "web") is None


@pytest.mark.asyncio
async def test_create_race_is_reported_as_already_exists(
    client_and_stub: tuple[object, Stubber],
) -> None:
    client, stub = client_and_stub
    stub.add_client_error(
        "create_log_stream",
        service_error_code="ResourceAlreadyExistsException",
        service_message="exists",
    )
    sink = CloudWatchLogsSink(client=client)

    with pytest.raises(StreamAlreadyExistsError):
        await sink.create_stream("app", "web")


class _ThreadRecordingClient:
    def __init__(self) -> None:
        self.threads: list[str] = []
        self.release = threading.Event()

    def put_log_events(self, **kwargs: object) -> dict[str, object]:
        self.threads.append(threading.current_thread().name)
        if kwargs["logEvents"][0]["message"] == "slow":  # type: ignore[index]
            self.release.wait(2.0)
        return {"nextSequenceToken": f"N{len(self.threads)}"}


@pytest.mark.asyncio
async def test_calls_run_on_the_sinks_own_thread() -> None:
    client = _ThreadRecordingClient()
    sink = CloudWatchLogsSink(client=client)

    result = await sink.append_events("app", "web", None, [LogEvent("a", 1)])

    assert result.next_token == "N1"
    assert client.threads == ["logshipper-cloudwatch"]
    assert threading.current_thread().name != "logshipper-cloudwatch"


@pytest.mark.asyncio
async def test_abandoned_call_finishes_before_the_next_one_starts() -> None:
    client = _ThreadRecordingClient()
    sink = CloudWatchLogsSink(client=client)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(
            sink.append_events("app", "web", None, [LogEvent("slow", 1)]),
            timeout=0.05,
        )
    follow_up = asyncio.ensure_future(
        sink.append_events("app", "web", "N1", [LogEvent("next", 2)])
    )
    await asyncio.sleep(0.05)
    assert not follow_up.done()

    client.release.set()
    result = await asyncio.wait_for(follow_up, timeout=2.0)

    assert result.next_token == "N2"
    assert len(client.threads) == 2

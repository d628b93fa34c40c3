"""
Testing utilities for code that ships logs through logshipper.

Example:
    from logshipper import StreamHook
    from logshipper.testing import InMemoryLogSink

    def test_ships():
        sink = InMemoryLogSink(groups=["app"])
        with StreamHook("app", "web", sink) as hook:
            hook.fire("hello")
        assert sink.messages("app", "web") == ["hello"]
"""

from .factories import create_batch_events, create_log_event, create_log_record
from .mocks import AppendCall, InMemoryLogSink

__all__ = [
    "AppendCall",
    "InMemoryLogSink",
    "create_batch_events",
    "create_log_event",
    "create_log_record",
]

from __future__ import annotations

import asyncio
from typing import List

import pytest

from canvas_mcp.api.sse import SseStream
from canvas_mcp.core.errors import TransportClosedError
from canvas_mcp.core.session import SessionRegistry
from canvas_mcp.protocol.dispatcher import McpDispatcher


def _drain(stream: SseStream) -> List[str]:
    async def collect() -> List[str]:
        return [frame async for frame in stream.frames()]

    return asyncio.run(collect())


def test_frames_are_yielded_until_close() -> None:
    stream = SseStream()
    stream.write("a")
    stream.write("b")
    stream.close()

    assert _drain(stream) == ["a", "b"]
    with pytest.raises(TransportClosedError):
        stream.write("c")


def test_full_backlog_is_a_transport_error() -> None:
    stream = SseStream(max_pending=2)
    stream.write("a")
    stream.write("b")

    with pytest.raises(TransportClosedError):
        stream.write("c")
    assert stream.pending == 2


def test_close_with_full_backlog_still_ends_stream() -> None:
    stream = SseStream(max_pending=2)
    stream.write("a")
    stream.write("b")
    stream.close()

    assert _drain(stream) == ["b"]


def test_stalled_client_is_removed(registry: SessionRegistry, dispatcher: McpDispatcher) -> None:
    stream = SseStream(max_pending=1)
    session = registry.admit("s1", stream)

    assert dispatcher.notify(session, "notifications/message", {"level": "info"}) is True
    assert dispatcher.notify(session, "notifications/message", {"level": "info"}) is False

    assert registry.get("s1") is None
    assert stream.closed is True

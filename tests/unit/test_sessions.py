import asyncio
import json
from collections.abc import AsyncIterator

import pytest

from qase_mcp.mcp.dispatcher import ToolDispatcher
from qase_mcp.mcp.server import MCPServer
from qase_mcp.mcp.sessions import SessionStore
from qase_mcp.mcp.sse import SSETransport
from qase_mcp.mcp.streamable_http import StreamableHTTPTransport, StreamConflictError
from qase_mcp.mcp.streams import EventStream, ServerSentEvent
from tests.support.mcp_helpers import (
    MCPTestClock,
    build_test_registry,
    initialize_request,
    tool_call,
)


def _server() -> MCPServer:
    return MCPServer(ToolDispatcher(build_test_registry()))


def _http_store(**kwargs: object) -> SessionStore[StreamableHTTPTransport]:
    return SessionStore(StreamableHTTPTransport, **kwargs)


def test_server_sent_event_encoding() -> None:
    assert ServerSentEvent("message", "{}").encode() == "event: message\ndata: {}\n\n"
    assert ServerSentEvent("note", "a\nb").encode() == "event: note\ndata: a\ndata: b\n\n"
    assert ServerSentEvent("empty", "").encode() == "event: empty\ndata: \n\n"


@pytest.mark.asyncio
async def test_event_stream_yields_until_closed() -> None:
    stream = EventStream()
    stream.publish("endpoint", "/messages")
    stream.publish_message({"jsonrpc": "2.0", "id": 1, "result": {}})
    stream.close()

    events = [event async for event in stream.events()]

    assert events[0] == "event: endpoint\ndata: /messages\n\n"
    assert events[1] == 'event: message\ndata: {"jsonrpc":"2.0","id":1,"result":{}}\n\n'
    with pytest.raises(RuntimeError, match="closed"):
        stream.publish("message", "late")


def test_store_creates_distinct_sessions_with_dedicated_servers() -> None:
    store = _http_store()

    first = store.create(_server())
    second = store.create(_server())

    assert first.session_id != second.session_id
    assert first.server is not second.server
    assert len(store) == 2
    assert first.session_id in store
    assert store.get(first.session_id) is first


def test_get_unknown_or_missing_id_returns_none_without_state() -> None:
    store = _http_store()

    assert store.get(None) is None
    assert store.get("") is None
    assert store.get("does-not-exist") is None
    assert len(store) == 0


def test_close_removes_session_and_releases_server() -> None:
    store = _http_store()
    session = store.create(_server())

    assert store.close(session.session_id) is True
    assert store.close(session.session_id) is False
    assert store.get(session.session_id) is None
    assert session.transport.closed is True
    assert session.server.transport is None


def test_idle_sessions_are_evicted_after_ttl() -> None:
    clock = MCPTestClock()
    store = _http_store(ttl_seconds=60, clock=clock)
    idle = store.create(_server())
    active = store.create(_server())

    clock.advance(seconds=45)
    store.get(active.session_id)
    clock.advance(seconds=30)

    assert store.evict_idle() == [idle.session_id]
    assert idle.session_id not in store
    assert active.session_id in store


def test_without_ttl_sessions_never_expire() -> None:
    clock = MCPTestClock()
    store = _http_store(clock=clock)
    session = store.create(_server())

    clock.advance(seconds=86_400)

    assert store.evict_idle() == []
    assert session.session_id in store


def test_close_all_empties_store() -> None:
    store = _http_store()
    sessions = [store.create(_server()) for _ in range(3)]

    store.close_all()

    assert len(store) == 0
    assert all(session.transport.closed for session in sessions)


@pytest.mark.asyncio
async def test_streamable_transport_answers_posts_and_rejects_after_close() -> None:
    transport = StreamableHTTPTransport("s1", _server())

    response = await transport.handle_post(initialize_request(1))
    assert isinstance(response, dict)
    assert response["result"]["serverInfo"]["name"] == "qase-mcp-server"

    transport.close()
    with pytest.raises(RuntimeError, match="closed"):
        await transport.handle_post(tool_call("echo", {"text": "x"}))


@pytest.mark.asyncio
async def test_streamable_transport_allows_one_event_stream() -> None:
    server = _server()
    transport = StreamableHTTPTransport("s1", server)

    events = transport.open_stream()
    with pytest.raises(StreamConflictError):
        transport.open_stream()

    await server.notify("notifications/message", {"level": "info"})
    transport.close()

    received = [event async for event in events]
    assert len(received) == 1
    assert '"notifications/message"' in received[0]


@pytest.mark.asyncio
async def test_sse_transport_announces_endpoint_then_pushes_responses() -> None:
    transport = SSETransport("abc", _server(), messages_endpoint="/messages")

    await transport.handle_post(initialize_request(1))
    await transport.handle_post({"jsonrpc": "2.0", "method": "notifications/initialized"})
    await transport.handle_post(
        [tool_call("echo", {"text": "one"}, 2), tool_call("echo", {"text": "two"}, 3)]
    )
    transport.close()

    events = [event async for event in transport.events()]
    assert events[0] == "event: endpoint\ndata: /messages?session_id=abc\n\n"
    payloads = [json.loads(event.split("data: ", 1)[1]) for event in events[1:]]
    assert [payload["id"] for payload in payloads] == [1, 2, 3]


@pytest.mark.asyncio
async def test_sse_send_after_close_is_dropped() -> None:
    transport = SSETransport("abc", _server(), messages_endpoint="/messages")
    transport.close()

    await transport.send({"jsonrpc": "2.0", "method": "late"})

    events = await asyncio.wait_for(_collect(transport.events()), timeout=1)
    assert len(events) == 1


async def _collect(events: AsyncIterator[str]) -> list[str]:
    return [event async for event in events]


@pytest.mark.asyncio
async def test_event_stream_can_be_reopened_after_unstarted_close() -> None:
    server = _server()
    transport = StreamableHTTPTransport("s1", server)

    abandoned = transport.open_stream()
    await abandoned.aclose()

    assert transport.stream_open is False
    reopened = transport.open_stream()
    await server.notify("notifications/message", {"level": "info"})
    transport.close()
    assert len([event async for event in reopened]) == 1


@pytest.mark.asyncio
async def test_event_stream_can_be_reopened_after_client_disconnect() -> None:
    server = _server()
    transport = StreamableHTTPTransport("s1", server)

    first = transport.open_stream()
    await server.notify("notifications/message", {"seq": 1})
    assert '"seq":1' in await anext(first)
    await first.aclose()

    second = transport.open_stream()
    await server.notify("notifications/message", {"seq": 2})
    transport.close()

    received = [event async for event in second]
    assert len(received) == 1
    assert '"seq":2' in received[0]
    assert transport.stream_open is False

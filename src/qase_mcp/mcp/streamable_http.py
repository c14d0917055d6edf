"""Session-bound transport for the streamable HTTP endpoint."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

from qase_mcp.mcp.server import JSONObject, JSONRPCPayload, MCPServer
from qase_mcp.mcp.streams import EventStream


class StreamConflictError(RuntimeError):
    """A standalone event stream is already open for this session."""


class EventSubscription:
    """One client's claim on a session's event stream.

    The claim is released when iteration ends, fails, or is closed, even if
    iteration never started.
    """

    def __init__(self, events: AsyncGenerator[str, None], release: Callable[[], None]) -> None:
        self._events = events
        self._release = release
        self.released = False

    def __aiter__(self) -> EventSubscription:
        return self

    async def __anext__(self) -> str:
        try:
            return await anext(self._events)
        except BaseException:
            self._finish()
            raise

    async def aclose(self) -> None:
        self._finish()
        await self._events.aclose()

    def _finish(self) -> None:
        if not self.released:
            self.released = True
            self._release()


class StreamableHTTPTransport:
    """Answers POSTed messages with JSON and carries server-initiated
    messages on an optional GET event stream.
    """

    def __init__(self, session_id: str, server: MCPServer) -> None:
        self.session_id = session_id
        self._server = server
        self._stream = EventStream()
        self._stream_open = False
        self.closed = False
        server.connect(self)

    @property
    def stream_open(self) -> bool:
        return self._stream_open

    async def handle_post(self, payload: Any) -> JSONRPCPayload | None:
        """Process one POST body; ``None`` when it carried only notifications."""
        if self.closed:
            msg = f"session {self.session_id} is closed"
            raise RuntimeError(msg)
        return await self._server.handle_payload(payload)

    def open_stream(self) -> EventSubscription:
        """Claim the session's standalone event stream until the subscription ends."""
        if self._stream_open:
            msg = f"session {self.session_id} already has an open event stream"
            raise StreamConflictError(msg)
        self._stream_open = True
        return EventSubscription(self._stream.events(), self._release_stream)

    def _release_stream(self) -> None:
        self._stream_open = False

    async def send(self, message: JSONObject) -> None:
        self._stream.publish_message(message)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._stream.close()
        self._server.close()

"""Server-sent-events transport: one GET stream per client, replies pushed as events."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog

from qase_mcp.mcp.server import JSONObject, MCPServer
from qase_mcp.mcp.streams import EventStream

logger = structlog.get_logger()


class SSETransport:
    """Binds one server to one event stream.

    The first event names the endpoint the client must POST its messages to.
    """

    def __init__(self, session_id: str, server: MCPServer, *, messages_endpoint: str) -> None:
        self.session_id = session_id
        self._server = server
        self._stream = EventStream()
        self.closed = False
        server.connect(self)
        self._stream.publish("endpoint", f"{messages_endpoint}?session_id={session_id}")

    def events(self) -> AsyncIterator[str]:
        return self._stream.events()

    async def handle_post(self, payload: Any) -> None:
        """Process one posted message and push any response onto the stream."""
        response = await self._server.handle_payload(payload)
        if response is None:
            return
        if isinstance(response, list):
            for item in response:
                await self.send(item)
        else:
            await self.send(response)

    async def send(self, message: JSONObject) -> None:
        if self.closed:
            logger.warning("sse_send_after_close", session_id=self.session_id)
            return
        self._stream.publish_message(message)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._stream.close()
        self._server.close()

"""Outbound message queues rendered as server-sent events."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class ServerSentEvent:
    event: str
    data: str

    def encode(self) -> str:
        lines = [f"event: {self.event}"]
        lines.extend(f"data: {line}" for line in self.data.splitlines() or [""])
        return "\n".join(lines) + "\n\n"


class EventStream:
    """Single-consumer queue of events that ends once closed."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ServerSentEvent | None] = asyncio.Queue()
        self.closed = False

    def publish(self, event: str, data: str) -> None:
        if self.closed:
            msg = "event stream is closed"
            raise RuntimeError(msg)
        self._queue.put_nowait(ServerSentEvent(event=event, data=data))

    def publish_message(self, message: dict[str, Any]) -> None:
        self.publish("message", json.dumps(message, separators=(",", ":")))

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(None)

    async def events(self) -> AsyncGenerator[str, None]:
        """Yield encoded events until the stream is closed."""
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item.encode()

"""Newline-delimited JSON-RPC over the process's stdin/stdout."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Protocol

import structlog

from qase_mcp.mcp.server import JSONObject, MCPServer, parse_error

logger = structlog.get_logger()

_STDIN_LIMIT = 16 * 1024 * 1024


class LineReader(Protocol):
    async def readline(self) -> bytes: ...


class OutputStream(Protocol):
    def write(self, data: bytes, /) -> Any: ...

    def flush(self) -> Any: ...


class StdioTransport:
    """Bind one server to a line-oriented pipe.

    Each inbound line is handled in its own task so a slow tool call does not
    hold up ``ping`` or other requests. Only the shared credential applies.
    """

    def __init__(self, server: MCPServer, reader: LineReader, output: OutputStream) -> None:
        self._server = server
        self._reader = reader
        self._output = output
        self._pending: set[asyncio.Task[None]] = set()
        server.connect(self)

    async def send(self, message: JSONObject | list[JSONObject]) -> None:
        # Whole-line writes with no await in between, so replies never interleave.
        self._output.write(json.dumps(message, separators=(",", ":")).encode() + b"\n")
        self._output.flush()

    async def serve(self) -> None:
        """Read until EOF, then wait for in-flight requests to finish."""
        with structlog.contextvars.bound_contextvars(transport="stdio"):
            while True:
                try:
                    line = await self._reader.readline()
                except ValueError:
                    # Oversized line; the reader has already dropped its buffer.
                    logger.warning("stdio_line_too_long", limit=_STDIN_LIMIT)
                    await self.send(parse_error("Parse error: message exceeds size limit"))
                    continue
                if not line:
                    break
                if not line.strip():
                    continue
                task = asyncio.create_task(self._handle_line(line))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            if self._pending:
                await asyncio.gather(*self._pending)
        self._server.close()
        logger.info("stdio_closed")

    async def _handle_line(self, line: bytes) -> None:
        try:
            payload = json.loads(line)
        except ValueError:
            logger.warning("stdio_parse_error", size=len(line))
            await self.send(parse_error())
            return
        response = await self._server.handle_payload(payload)
        if response is not None:
            await self.send(response)


async def run_stdio(server: MCPServer) -> None:
    """Serve ``server`` on this process's stdin/stdout until stdin closes."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=_STDIN_LIMIT)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    transport = StdioTransport(server, reader, sys.stdout.buffer)
    logger.info("stdio_ready")
    await transport.serve()

"""MCP protocol server: JSON-RPC method routing over the tool dispatcher.

One ``MCPServer`` instance serves exactly one transport connection. The
dispatcher (and the registry behind it) is shared between instances.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog
from mcp import types as mcp_types

from qase_mcp.core.errors import UnknownToolError
from qase_mcp.mcp.dispatcher import ToolDispatcher

type JSONObject = dict[str, Any]
type JSONRPCPayload = JSONObject | list[JSONObject]

SERVER_NAME = "qase-mcp-server"
SERVER_VERSION = "0.1.0"
SUPPORTED_PROTOCOL_VERSIONS: frozenset[str] = frozenset(
    {"2024-11-05", "2025-03-26", "2025-06-18", mcp_types.LATEST_PROTOCOL_VERSION}
)

logger = structlog.get_logger()


class ServerTransport(Protocol):
    """Outbound half of a transport connection."""

    async def send(self, message: JSONObject) -> None:
        """Deliver one server-initiated message to the client."""


class _RPCError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _response(request_id: str | int | None, result: Any) -> JSONObject:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _error(request_id: str | int | None, code: int, message: str) -> JSONObject:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {
            "code": code,
            "message": message,
        },
    }


def parse_error(message: str = "Parse error") -> JSONObject:
    return _error(None, mcp_types.PARSE_ERROR, message)


def is_initialize_request(payload: Any) -> bool:
    """Return True when ``payload`` (or any batch member) is an ``initialize`` request."""
    if isinstance(payload, list):
        return any(is_initialize_request(item) for item in payload)
    return isinstance(payload, dict) and payload.get("method") == "initialize"


def has_requests(payload: Any) -> bool:
    """Return True when ``payload`` contains at least one message expecting a response."""
    if isinstance(payload, list):
        return any(has_requests(item) for item in payload)
    return isinstance(payload, dict) and "method" in payload and "id" in payload


class MCPServer:
    """Protocol-level connection object bound to at most one transport."""

    def __init__(
        self,
        dispatcher: ToolDispatcher,
        *,
        name: str = SERVER_NAME,
        version: str = SERVER_VERSION,
    ) -> None:
        self._dispatcher = dispatcher
        self._name = name
        self._version = version
        self._transport: ServerTransport | None = None
        self.initialized = False
        self.protocol_version: str | None = None
        self.client_info: JSONObject | None = None

    @property
    def transport(self) -> ServerTransport | None:
        return self._transport

    def connect(self, transport: ServerTransport) -> None:
        """Bind this server to ``transport``. A server accepts only one transport."""
        if self._transport is not None:
            msg = "MCPServer is already connected to a transport; create a new server instance"
            raise RuntimeError(msg)
        self._transport = transport

    def close(self) -> None:
        self._transport = None

    async def notify(self, method: str, params: JSONObject | None = None) -> None:
        """Send a server-initiated notification over the connected transport."""
        if self._transport is None:
            msg = "MCPServer is not connected to a transport"
            raise RuntimeError(msg)
        message: JSONObject = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._transport.send(message)

    async def handle_payload(self, payload: Any) -> JSONRPCPayload | None:
        """Handle one message or a batch; ``None`` when nothing needs a response."""
        if isinstance(payload, list):
            if not payload:
                return _error(None, mcp_types.INVALID_REQUEST, "Empty batch")
            responses = [await self.handle_message(item) for item in payload]
            answered = [response for response in responses if response is not None]
            return answered or None
        return await self.handle_message(payload)

    async def handle_message(self, message: Any) -> JSONObject | None:
        """Route one JSON-RPC message. Notifications and client responses yield ``None``."""
        if not isinstance(message, dict) or message.get("jsonrpc") != "2.0":
            request_id = message.get("id") if isinstance(message, dict) else None
            return _error(request_id, mcp_types.INVALID_REQUEST, "Invalid Request")

        request_id = message.get("id")
        method = message.get("method")
        if method is None and ("result" in message or "error" in message):
            return None
        if not isinstance(method, str):
            return _error(request_id, mcp_types.INVALID_REQUEST, "Invalid method")

        params = message.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return _error(request_id, mcp_types.INVALID_PARAMS, "Invalid params")

        if "id" not in message:
            self._handle_notification(method)
            return None

        try:
            result = await self._handle_request(method, params)
        except UnknownToolError as exc:
            logger.warning("unknown_tool_requested", tool=exc.name)
            return _error(request_id, mcp_types.METHOD_NOT_FOUND, str(exc))
        except _RPCError as exc:
            return _error(request_id, exc.code, exc.message)
        except Exception:  # noqa: BLE001
            logger.exception("request_handling_failed", method=method)
            return _error(request_id, mcp_types.INTERNAL_ERROR, "Internal error")
        return _response(request_id, result)

    async def _handle_request(self, method: str, params: JSONObject) -> JSONObject:
        if method == "initialize":
            return self._initialize(params)

        if method == "ping":
            return {}

        if method == "tools/list":
            tools = self._dispatcher.list_tools()
            logger.debug("tools_listed", count=len(tools))
            return {
                "tools": [
                    tool.model_dump(mode="json", by_alias=True, exclude_none=True)
                    for tool in tools
                ]
            }

        if method == "tools/call":
            tool_name = params.get("name")
            arguments = params.get("arguments")
            if not isinstance(tool_name, str) or not tool_name:
                raise _RPCError(mcp_types.INVALID_PARAMS, "Missing tool name")
            if arguments is not None and not isinstance(arguments, dict):
                raise _RPCError(mcp_types.INVALID_PARAMS, "Invalid tool arguments")
            with structlog.contextvars.bound_contextvars(tool=tool_name):
                result = await self._dispatcher.call_tool(tool_name, arguments)
            return result.model_dump(mode="json", by_alias=True, exclude_none=True)

        raise _RPCError(mcp_types.METHOD_NOT_FOUND, f"Unknown method: {method}")

    def _initialize(self, params: JSONObject) -> JSONObject:
        requested = params.get("protocolVersion")
        if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
            self.protocol_version = requested
        else:
            self.protocol_version = mcp_types.LATEST_PROTOCOL_VERSION
        client_info = params.get("clientInfo")
        self.client_info = client_info if isinstance(client_info, dict) else None
        return {
            "protocolVersion": self.protocol_version,
            "serverInfo": {"name": self._name, "version": self._version},
            "capabilities": {"tools": {"listChanged": False}},
        }

    def _handle_notification(self, method: str) -> None:
        if method == "notifications/initialized":
            self.initialized = True
            logger.info("client_initialized", client=self.client_info)
        else:
            logger.debug("notification_ignored", method=method)

"""Shared API dependency providers."""

from __future__ import annotations

from collections.abc import Callable

from qase_mcp.core.config import ServerSettings
from qase_mcp.mcp.dispatcher import ToolDispatcher
from qase_mcp.mcp.registry import ToolRegistry
from qase_mcp.mcp.server import MCPServer
from qase_mcp.mcp.sessions import SessionStore
from qase_mcp.mcp.sse import SSETransport
from qase_mcp.mcp.streamable_http import StreamableHTTPTransport
from qase_mcp.operations.catalog import build_registry

type ServerFactory = Callable[[], MCPServer]

_SETTINGS: ServerSettings | None = None
_DISPATCHER: ToolDispatcher | None = None
_HTTP_SESSIONS: SessionStore[StreamableHTTPTransport] | None = None
_SSE_SESSIONS: SessionStore[SSETransport] | None = None


def configure(settings: ServerSettings, registry: ToolRegistry | None = None) -> None:
    """Install process-wide settings and (optionally) a prebuilt registry."""
    global _SETTINGS, _DISPATCHER, _HTTP_SESSIONS, _SSE_SESSIONS
    _SETTINGS = settings
    _DISPATCHER = ToolDispatcher(registry) if registry is not None else None
    _HTTP_SESSIONS = None
    _SSE_SESSIONS = None


def get_settings() -> ServerSettings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = ServerSettings()
    return _SETTINGS


def get_dispatcher() -> ToolDispatcher:
    global _DISPATCHER
    if _DISPATCHER is None:
        _DISPATCHER = ToolDispatcher(build_registry())
    return _DISPATCHER


def get_server_factory() -> ServerFactory:
    dispatcher = get_dispatcher()
    return lambda: MCPServer(dispatcher)


def get_http_sessions() -> SessionStore[StreamableHTTPTransport]:
    global _HTTP_SESSIONS
    if _HTTP_SESSIONS is None:
        _HTTP_SESSIONS = SessionStore(
            StreamableHTTPTransport,
            ttl_seconds=get_settings().session_ttl_seconds,
        )
    return _HTTP_SESSIONS


def get_sse_sessions() -> SessionStore[SSETransport]:
    global _SSE_SESSIONS
    if _SSE_SESSIONS is None:
        messages_endpoint = get_settings().messages_endpoint
        _SSE_SESSIONS = SessionStore(
            lambda session_id, server: SSETransport(
                session_id, server, messages_endpoint=messages_endpoint
            )
        )
    return _SSE_SESSIONS

"""Session-oriented MCP endpoint (streamable HTTP transport)."""

from __future__ import annotations

import json
from collections.abc import Callable

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from qase_mcp.api.deps import get_http_sessions, get_server_factory
from qase_mcp.core.context import bearer_token, run_with_credential
from qase_mcp.mcp.server import MCPServer, is_initialize_request, parse_error
from qase_mcp.mcp.sessions import SessionStore
from qase_mcp.mcp.streamable_http import StreamableHTTPTransport, StreamConflictError

SESSION_HEADER = "mcp-session-id"

logger = structlog.get_logger()


def _client_error(message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status.HTTP_400_BAD_REQUEST)


def _internal_error() -> JSONResponse:
    return JSONResponse(
        {"error": "Internal server error"},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def create_router(*, endpoint: str = "/mcp") -> APIRouter:
    router = APIRouter(tags=["mcp-transport"])

    @router.post(endpoint)
    async def mcp_post(
        request: Request,
        sessions: SessionStore[StreamableHTTPTransport] = Depends(get_http_sessions),
        server_factory: Callable[[], MCPServer] = Depends(get_server_factory),
    ) -> Response:
        sessions.evict_idle()
        try:
            payload = json.loads(await request.body())
        except ValueError:
            return JSONResponse(parse_error(), status_code=status.HTTP_400_BAD_REQUEST)

        session_id = request.headers.get(SESSION_HEADER)
        session = sessions.get(session_id)
        if session is None:
            if session_id or not is_initialize_request(payload):
                return _client_error(
                    "Invalid request: session not found or not an initialize request"
                )
            session = sessions.create(server_factory())

        credential = bearer_token(request.headers.get("authorization"))
        headers = {SESSION_HEADER: session.session_id}
        with structlog.contextvars.bound_contextvars(
            session_id=session.session_id, transport="streamable-http"
        ):
            try:
                response = await run_with_credential(
                    credential, session.transport.handle_post, payload
                )
            except Exception:  # noqa: BLE001
                logger.exception("mcp_post_failed")
                return _internal_error()

        if response is None:
            return Response(status_code=status.HTTP_202_ACCEPTED, headers=headers)
        return JSONResponse(response, headers=headers)

    @router.get(endpoint)
    async def mcp_get(
        request: Request,
        sessions: SessionStore[StreamableHTTPTransport] = Depends(get_http_sessions),
    ) -> Response:
        sessions.evict_idle()
        session = sessions.get(request.headers.get(SESSION_HEADER))
        if session is None:
            return _client_error("Invalid or missing session ID")
        try:
            events = session.transport.open_stream()
        except StreamConflictError as exc:
            return JSONResponse({"error": str(exc)}, status_code=status.HTTP_409_CONFLICT)
        return StreamingResponse(
            events,
            media_type="text/event-stream",
            headers={SESSION_HEADER: session.session_id, "Cache-Control": "no-cache"},
        )

    @router.delete(endpoint)
    async def mcp_delete(
        request: Request,
        sessions: SessionStore[StreamableHTTPTransport] = Depends(get_http_sessions),
    ) -> Response:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id or session_id not in sessions:
            return _client_error("Invalid or missing session ID")
        try:
            sessions.close(session_id)
        except Exception:  # noqa: BLE001
            logger.exception("session_close_failed", session_id=session_id)
            return _internal_error()
        return JSONResponse({"status": "session closed"})

    return router

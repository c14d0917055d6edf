"""Server-sent-events MCP endpoints: a GET stream plus a POST inbox."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from qase_mcp.api.deps import get_server_factory, get_sse_sessions
from qase_mcp.core.context import bearer_token, run_with_credential
from qase_mcp.mcp.server import MCPServer, parse_error
from qase_mcp.mcp.sessions import Session, SessionStore
from qase_mcp.mcp.sse import SSETransport

logger = structlog.get_logger()


def create_router(
    *,
    sse_endpoint: str = "/sse",
    messages_endpoint: str = "/messages",
) -> APIRouter:
    router = APIRouter(tags=["mcp-sse"])

    @router.get(sse_endpoint)
    async def sse_connect(
        sessions: SessionStore[SSETransport] = Depends(get_sse_sessions),
        server_factory: Callable[[], MCPServer] = Depends(get_server_factory),
    ) -> StreamingResponse:
        session = sessions.create(server_factory())
        logger.info("sse_client_connected", session_id=session.session_id)
        return StreamingResponse(
            _stream(session, sessions),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    @router.post(messages_endpoint)
    async def sse_message(
        request: Request,
        session_id: str | None = None,
        sessions: SessionStore[SSETransport] = Depends(get_sse_sessions),
    ) -> Response:
        if not len(sessions):
            return JSONResponse(
                {"error": "No SSE connection established"},
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        session = sessions.get(session_id)
        if session is None:
            return JSONResponse(
                {"error": "Invalid or missing session ID"},
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        try:
            payload = json.loads(await request.body())
        except ValueError:
            return JSONResponse(parse_error(), status_code=status.HTTP_400_BAD_REQUEST)

        credential = bearer_token(request.headers.get("authorization"))
        with structlog.contextvars.bound_contextvars(
            session_id=session.session_id, transport="sse"
        ):
            try:
                await run_with_credential(credential, session.transport.handle_post, payload)
            except Exception:  # noqa: BLE001
                logger.exception("sse_message_failed")
                return JSONResponse(
                    {"error": "Internal server error"},
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                )
        return JSONResponse({"status": "accepted"}, status_code=status.HTTP_202_ACCEPTED)

    return router


async def _stream(
    session: Session[SSETransport],
    sessions: SessionStore[SSETransport],
) -> AsyncIterator[str]:
    try:
        async for chunk in session.transport.events():
            yield chunk
    finally:
        sessions.close(session.session_id)
        logger.info("sse_client_disconnected", session_id=session.session_id)

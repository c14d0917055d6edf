"""FastAPI app entrypoints for the HTTP-based MCP transports."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response

from qase_mcp.api.deps import get_http_sessions, get_settings, get_sse_sessions
from qase_mcp.api.routes.sse import create_router as create_sse_router
from qase_mcp.api.routes.streamable_http import SESSION_HEADER
from qase_mcp.api.routes.streamable_http import create_router as create_http_router
from qase_mcp.core.config import ServerSettings
from qase_mcp.mcp.server import SERVER_VERSION


def _cors_middleware(
    origin: str,
) -> Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]:
    cors_headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": f"Content-Type, Authorization, {SESSION_HEADER}",
        "Access-Control-Expose-Headers": SESSION_HEADER,
    }

    async def middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        for name, value in cors_headers.items():
            response.headers[name] = value
        return response

    return middleware


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    get_http_sessions().close_all()
    get_sse_sessions().close_all()


def create_app(transport: str = "http", *, settings: ServerSettings | None = None) -> FastAPI:
    """Build the app for ``transport`` (``"http"`` or ``"sse"``)."""
    settings = settings or get_settings()
    app = FastAPI(title="Qase MCP Server", version=SERVER_VERSION, lifespan=_lifespan)
    app.middleware("http")(_cors_middleware(settings.cors_origin))

    if transport == "sse":
        label = "sse"
        app.include_router(
            create_sse_router(
                sse_endpoint=settings.sse_endpoint,
                messages_endpoint=settings.messages_endpoint,
            )
        )
    elif transport == "http":
        label = "streamable-http"
        app.include_router(create_http_router(endpoint=settings.endpoint))
    else:
        msg = f"Unsupported HTTP transport: {transport}"
        raise ValueError(msg)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "transport": label}

    return app


def run(settings: ServerSettings) -> None:
    uvicorn.run(
        create_app(settings.transport, settings=settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )

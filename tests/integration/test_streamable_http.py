from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from qase_mcp.api.app import create_app
from qase_mcp.api.deps import get_http_sessions, get_server_factory
from qase_mcp.core.config import ServerSettings
from qase_mcp.mcp.dispatcher import ToolDispatcher
from qase_mcp.mcp.server import MCPServer
from qase_mcp.mcp.sessions import SessionStore
from qase_mcp.mcp.streamable_http import StreamableHTTPTransport
from tests.support.mcp_helpers import build_test_registry, initialize_request, tool_call

SESSION = "mcp-session-id"


def _app() -> tuple[FastAPI, SessionStore[StreamableHTTPTransport]]:
    app = create_app("http", settings=ServerSettings(_env_file=None))
    sessions: SessionStore[StreamableHTTPTransport] = SessionStore(StreamableHTTPTransport)
    dispatcher = ToolDispatcher(build_test_registry())
    app.dependency_overrides[get_http_sessions] = lambda: sessions
    app.dependency_overrides[get_server_factory] = lambda: lambda: MCPServer(dispatcher)
    return app, sessions


def _client() -> tuple[TestClient, SessionStore[StreamableHTTPTransport]]:
    app, sessions = _app()
    return TestClient(app), sessions


def _initialize(client: TestClient, token: str | None = None) -> str:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    response = client.post("/mcp", json=initialize_request(), headers=headers)
    assert response.status_code == 200
    return response.headers[SESSION]


def _tool_text(response: httpx.Response) -> str:
    return response.json()["result"]["content"][0]["text"]


def test_initialize_creates_session_and_returns_header() -> None:
    client, sessions = _client()

    response = client.post("/mcp", json=initialize_request(1))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == 1
    assert body["result"]["serverInfo"]["name"] == "qase-mcp-server"
    assert response.headers[SESSION] in sessions
    assert len(sessions) == 1


def test_session_round_trip_list_and_call() -> None:
    client, _ = _client()
    session_id = _initialize(client)
    headers = {SESSION: session_id}

    initialized = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "method": "notifications/initialized"},
        headers=headers,
    )
    assert initialized.status_code == 202
    assert initialized.headers[SESSION] == session_id

    listed = client.post(
        "/mcp",
        json={"jsonrpc": "2.0", "id": 2, "method": "tools/list"},
        headers=headers,
    )
    assert [tool["name"] for tool in listed.json()["result"]["tools"]] == [
        "echo",
        "boom",
        "crash",
        "whoami",
    ]

    echoed = client.post("/mcp", json=tool_call("echo", {"text": "hi"}, 3), headers=headers)
    assert echoed.status_code == 200
    assert json.loads(_tool_text(echoed)) == {"text": "hi"}


def test_tool_failures_are_results_and_unknown_tools_are_errors() -> None:
    client, _ = _client()
    headers = {SESSION: _initialize(client)}

    failed = client.post("/mcp", json=tool_call("boom", {}, 4), headers=headers)
    assert failed.status_code == 200
    assert failed.json()["result"]["isError"] is True
    assert "Suggestion: check the id" in _tool_text(failed)

    unknown = client.post("/mcp", json=tool_call("missing", {}, 5), headers=headers)
    assert unknown.status_code == 200
    assert unknown.json()["error"]["code"] == -32601


def test_each_initialize_gets_its_own_session() -> None:
    client, sessions = _client()

    first = _initialize(client)
    second = _initialize(client)

    assert first != second
    assert len(sessions) == 2
    assert sessions.get(first).server is not sessions.get(second).server


def test_non_initialize_without_session_is_rejected() -> None:
    client, sessions = _client()

    response = client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "tools/list"})

    assert response.status_code == 400
    assert "session not found" in response.json()["error"]
    assert len(sessions) == 0


def test_unknown_session_is_rejected_without_creating_state() -> None:
    client, sessions = _client()
    headers = {SESSION: "does-not-exist"}

    posted = client.post("/mcp", json=initialize_request(), headers=headers)
    fetched = client.get("/mcp", headers=headers)
    deleted = client.delete("/mcp", headers=headers)

    assert [posted.status_code, fetched.status_code, deleted.status_code] == [400, 400, 400]
    assert fetched.json() == {"error": "Invalid or missing session ID"}
    assert len(sessions) == 0


def test_malformed_body_is_parse_error() -> None:
    client, _ = _client()

    response = client.post(
        "/mcp", content=b"{nope", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == -32700


def test_delete_closes_session() -> None:
    client, sessions = _client()
    session_id = _initialize(client)
    transport = sessions.get(session_id).transport

    deleted = client.delete("/mcp", headers={SESSION: session_id})
    assert deleted.status_code == 200
    assert deleted.json() == {"status": "session closed"}
    assert transport.closed is True

    after = client.post(
        "/mcp", json=tool_call("echo", {"text": "x"}), headers={SESSION: session_id}
    )
    stream = client.get("/mcp", headers={SESSION: session_id})
    assert after.status_code == 400
    assert stream.status_code == 400


def test_second_event_stream_is_a_conflict() -> None:
    client, sessions = _client()
    session_id = _initialize(client)
    sessions.get(session_id).transport.open_stream()

    response = client.get("/mcp", headers={SESSION: session_id})

    assert response.status_code == 409


def test_bearer_token_scopes_tool_calls_per_request() -> None:
    client, _ = _client()
    alice = _initialize(client, "alice-token")
    anonymous = _initialize(client)

    as_alice = client.post(
        "/mcp",
        json=tool_call("whoami", {}),
        headers={SESSION: alice, "Authorization": "Bearer alice-token"},
    )
    as_bob = client.post(
        "/mcp",
        json=tool_call("whoami", {}),
        headers={SESSION: alice, "Authorization": "Bearer bob-token"},
    )
    without = client.post("/mcp", json=tool_call("whoami", {}), headers={SESSION: anonymous})

    assert json.loads(_tool_text(as_alice)) == {"before": "alice-token", "after": "alice-token"}
    assert json.loads(_tool_text(as_bob)) == {"before": "bob-token", "after": "bob-token"}
    assert json.loads(_tool_text(without)) == {"before": "", "after": ""}


@pytest.mark.asyncio
async def test_concurrent_sessions_keep_their_own_credentials() -> None:
    app, _ = _app()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:

        async def call_as(token: str, delay: float) -> dict[str, str]:
            auth = {"Authorization": f"Bearer {token}"}
            init = await client.post("/mcp", json=initialize_request(), headers=auth)
            session = {SESSION: init.headers[SESSION], **auth}
            response = await client.post(
                "/mcp", json=tool_call("whoami", {"delay": delay}), headers=session
            )
            return json.loads(_tool_text(response))

        results = await asyncio.gather(call_as("tokenA", 0.03), call_as("tokenB", 0.01))

    assert results == [
        {"before": "tokenA", "after": "tokenA"},
        {"before": "tokenB", "after": "tokenB"},
    ]


def test_cors_preflight_and_headers() -> None:
    client, _ = _client()

    preflight = client.options("/mcp")
    assert preflight.status_code == 200
    assert preflight.content == b""
    assert preflight.headers["access-control-allow-origin"] == "*"
    assert "DELETE" in preflight.headers["access-control-allow-methods"]
    assert SESSION in preflight.headers["access-control-allow-headers"]

    response = client.post("/mcp", json=initialize_request())
    assert response.headers["access-control-expose-headers"] == SESSION


def test_health_reports_transport() -> None:
    client, _ = _client()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "transport": "streamable-http"}


def test_create_app_rejects_unknown_transport() -> None:
    with pytest.raises(ValueError, match="Unsupported HTTP transport"):
        create_app("stdio", settings=ServerSettings(_env_file=None))

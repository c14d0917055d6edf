"""Qase REST client and the credential-aware client factory."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from qase_mcp.core.config import TOKEN_HELP_URL, QaseSettings
from qase_mcp.core.context import get_current_credential
from qase_mcp.core.errors import QaseApiError, QaseConfigurationError

type JSONValue = None | bool | int | float | str | list[JSONValue] | dict[str, JSONValue]

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 30.0


class QaseClient:
    """Thin async client for the Qase v1 REST API.

    Every call opens its own ``httpx.AsyncClient`` so request-scoped
    instances need no explicit close.
    """

    def __init__(
        self,
        *,
        token: str,
        host: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._token = token
        self.host = host.rstrip("/")
        self._transport = transport
        self._timeout = timeout

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> JSONValue:
        """Send one API request and unwrap the ``{status, result}`` envelope.

        Raises ``httpx.HTTPStatusError`` for non-2xx responses and
        ``QaseApiError`` when the envelope reports ``status: false``.
        """
        query = {key: value for key, value in (params or {}).items() if value is not None}
        async with httpx.AsyncClient(
            base_url=self.host,
            headers={"Token": self._token, "Accept": "application/json"},
            transport=self._transport,
            timeout=self._timeout,
        ) as http:
            response = await http.request(method, path, params=query or None, json=json)
        response.raise_for_status()
        if not response.content:
            return None
        payload = response.json()
        if isinstance(payload, dict) and "status" in payload:
            if payload.get("status") is False:
                message = payload.get("errorMessage") or "Qase API reported a failure"
                raise QaseApiError(str(message), status_code=response.status_code, details=payload)
            if "result" in payload:
                return payload["result"]
        return payload

    async def get(self, path: str, *, params: Mapping[str, Any] | None = None) -> JSONValue:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: Any = None) -> JSONValue:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, *, json: Any = None) -> JSONValue:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str, *, json: Any = None) -> JSONValue:
        return await self.request("DELETE", path, json=json)


class ClientFactory:
    """Resolve the client for the current execution scope.

    A non-empty scoped credential gets a fresh client. Otherwise the shared
    client built from ``QASE_API_TOKEN`` is created once and reused.
    """

    def __init__(
        self,
        settings_loader: Callable[[], QaseSettings] = QaseSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings_loader = settings_loader
        self._transport = transport
        self._settings: QaseSettings | None = None
        self._shared: QaseClient | None = None

    def get_client(self) -> QaseClient:
        credential = get_current_credential()
        if credential:
            return QaseClient(
                token=credential,
                host=self._load_settings().host,
                transport=self._transport,
            )
        if self._shared is None:
            settings = self._load_settings()
            if not settings.token:
                msg = (
                    "QASE_API_TOKEN environment variable is required. "
                    f"Get your token from: {TOKEN_HELP_URL}"
                )
                raise QaseConfigurationError(msg)
            self._shared = QaseClient(
                token=settings.token,
                host=settings.host,
                transport=self._transport,
            )
            logger.info("shared_client_created", host=settings.host)
        return self._shared

    def reset(self) -> None:
        """Drop cached settings and the shared client."""
        self._settings = None
        self._shared = None

    def _load_settings(self) -> QaseSettings:
        if self._settings is None:
            try:
                self._settings = self._settings_loader()
            except ValidationError as exc:
                msg = f"Invalid Qase API configuration: {exc}"
                raise QaseConfigurationError(msg) from exc
        return self._settings


_DEFAULT_FACTORY = ClientFactory()


def get_client() -> QaseClient:
    """Return the Qase client for the current request scope."""
    return _DEFAULT_FACTORY.get_client()


def reset_client_instance() -> None:
    _DEFAULT_FACTORY.reset()

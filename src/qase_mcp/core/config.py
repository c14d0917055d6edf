"""Environment-driven settings for the Qase API client and MCP transports."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

type TransportName = Literal["stdio", "sse", "http"]

DEFAULT_API_DOMAIN = "api.qase.io"
TOKEN_HELP_URL = "https://app.qase.io/user/api/token"


class QaseSettings(BaseSettings):
    """Qase API credentials. Env vars prefixed with QASE_API_."""

    model_config = SettingsConfigDict(env_prefix="QASE_API_", env_file=".env", extra="ignore")

    token: str = ""
    domain: str = DEFAULT_API_DOMAIN

    @field_validator("domain")
    @classmethod
    def _validate_domain(cls, v: str) -> str:
        v = v.strip() or DEFAULT_API_DOMAIN
        if "://" in v or "/" in v:
            msg = (
                "QASE_API_DOMAIN should only contain the domain name (e.g., api.qase.io), "
                "not the full URL with protocol or path"
            )
            raise ValueError(msg)
        return v

    @property
    def host(self) -> str:
        return f"https://{self.domain}"


class ServerSettings(BaseSettings):
    """MCP transport settings. Env vars prefixed with QASE_MCP_."""

    model_config = SettingsConfigDict(env_prefix="QASE_MCP_", env_file=".env", extra="ignore")

    transport: TransportName = "stdio"
    host: str = "0.0.0.0"
    port: int = Field(3000, gt=0, lt=65536)
    endpoint: str = "/mcp"
    sse_endpoint: str = "/sse"
    messages_endpoint: str = "/messages"
    cors_origin: str = "*"
    session_ttl_seconds: float | None = Field(None, gt=0)
    log_level: str = "INFO"
    log_json: bool = False

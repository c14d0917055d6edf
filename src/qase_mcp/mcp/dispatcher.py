"""Tool dispatch: resolve, invoke, and wrap every outcome in a result envelope."""

from __future__ import annotations

import json
from typing import Any

import structlog
from mcp import types as mcp_types
from pydantic_core import to_jsonable_python

from qase_mcp.core.errors import ToolExecutionError, UnknownToolError, format_api_error
from qase_mcp.mcp.registry import ToolRegistry

logger = structlog.get_logger()


def text_result(text: str, *, is_error: bool = False) -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=text)],
        isError=is_error,
    )


class ToolDispatcher:
    """Stateless bridge between protocol requests and registered handlers."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def list_tools(self) -> list[mcp_types.Tool]:
        return self._registry.list_tools()

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> mcp_types.CallToolResult:
        """Invoke tool ``name`` and return its result envelope.

        Raises ``UnknownToolError`` when ``name`` is not registered. Handler
        failures never raise; they come back as ``isError`` results.
        """
        handler = self._registry.resolve(name)
        if handler is None:
            raise UnknownToolError(name)

        log = logger.bind(tool=name)
        log.info("tool_call_started")
        try:
            result = await handler(arguments or {})
            text = json.dumps(result, indent=2, ensure_ascii=False, default=to_jsonable_python)
        except ToolExecutionError as exc:
            log.info("tool_call_rejected", error=exc.message)
            return text_result(exc.to_user_message(), is_error=True)
        except Exception as exc:  # noqa: BLE001
            message = format_api_error(exc)
            log.error("tool_call_failed", error=message, exc_info=exc)
            return text_result(f"Tool '{name}' execution failed: {message}", is_error=True)

        log.info("tool_call_succeeded")
        return text_result(text)

"""Tool registry: names mapped to input contracts and async handlers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from mcp import types as mcp_types
from pydantic import BaseModel

from qase_mcp.mcp.schema import JSONSchema, input_schema_for

type ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """One invocable tool. Replaced wholesale on re-registration."""

    name: str
    description: str
    input_contract: type[BaseModel] | None
    handler: ToolHandler
    input_schema: JSONSchema = field(default_factory=dict)

    def to_tool(self) -> mcp_types.Tool:
        return mcp_types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )


class ToolRegistry:
    """Ordered mapping of tool name to descriptor.

    Registration happens once at startup; every server instance reads the
    same registry afterwards.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def register(
        self,
        name: str,
        description: str,
        input_contract: type[BaseModel] | None,
        handler: ToolHandler,
    ) -> ToolDescriptor:
        """Store ``handler`` under ``name``. An existing entry is overwritten."""
        descriptor = ToolDescriptor(
            name=name,
            description=description,
            input_contract=input_contract,
            handler=handler,
            input_schema=input_schema_for(input_contract),
        )
        if name in self._tools:
            logger.warning("tool_replaced", tool_name=name)
        self._tools[name] = descriptor
        logger.debug("tool_registered", tool_name=name)
        return descriptor

    def list_tools(self) -> list[mcp_types.Tool]:
        """Return protocol tool descriptions in registration order."""
        return [descriptor.to_tool() for descriptor in self._tools.values()]

    def descriptors(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def resolve(self, name: str) -> ToolHandler | None:
        """Return the handler for ``name``, or ``None`` when not registered."""
        descriptor = self._tools.get(name)
        return descriptor.handler if descriptor is not None else None

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def count(self) -> int:
        return len(self._tools)

    def unregister(self, name: str) -> bool:
        """Remove one tool. Returns False when it was not registered."""
        return self._tools.pop(name, None) is not None

    def clear(self) -> None:
        self._tools.clear()

"""Assemble the registry of every Qase tool module."""

from __future__ import annotations

import structlog

from qase_mcp.mcp.registry import ToolRegistry
from qase_mcp.operations import cases, projects, runs

logger = structlog.get_logger()

TOOL_MODULES = (projects, cases, runs)


def build_registry() -> ToolRegistry:
    registry = ToolRegistry()
    for module in TOOL_MODULES:
        module.register_tools(registry)
    logger.info("tools_registered", count=registry.count())
    return registry

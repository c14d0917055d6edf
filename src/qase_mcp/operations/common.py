"""Shared argument types and helpers for Qase tool handlers."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Annotated, Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from qase_mcp.core.errors import (
    QaseApiError,
    ToolExecutionError,
    create_tool_error,
    format_api_error,
)

ProjectCode = Annotated[
    str,
    Field(
        min_length=2,
        max_length=10,
        pattern=r"^[A-Z0-9_]+$",
        description="Project code (2-10 uppercase letters, numbers, or underscores)",
    ),
]
EntityId = Annotated[int, Field(gt=0, description="Entity ID (positive integer)")]


class ToolInput(BaseModel):
    """Base for tool input contracts."""

    model_config = ConfigDict(extra="ignore")

    def query(self, *exclude: str) -> dict[str, Any]:
        """Return set fields as request parameters, minus ``exclude``."""
        return self.model_dump(exclude_none=True, exclude=set(exclude))


class Pagination(ToolInput):
    limit: int | None = Field(
        None,
        gt=0,
        le=100,
        description="Maximum number of items to return (default: 10, max: 100)",
    )
    offset: int | None = Field(
        None,
        ge=0,
        description="Number of items to skip for pagination (default: 0)",
    )


def parse_arguments[M: BaseModel](contract: type[M], arguments: dict[str, Any]) -> M:
    """Validate ``arguments`` against ``contract``.

    Raises ``ToolExecutionError`` naming each invalid field.
    """
    try:
        return contract.model_validate(arguments)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'arguments'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ToolExecutionError(
            f"Invalid arguments: {problems}",
            "Check that all required fields are provided and values are in the correct format.",
        ) from exc


async def api_call[T](context: str, request: Awaitable[T]) -> T:
    """Await an API request, turning API failures into tool errors."""
    try:
        return await request
    except (httpx.HTTPError, QaseApiError) as exc:
        raise create_tool_error(format_api_error(exc), context, cause=exc) from exc

"""Test run tools."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from qase_mcp.core.client import JSONValue, get_client
from qase_mcp.mcp.registry import ToolRegistry
from qase_mcp.operations.common import (
    EntityId,
    Pagination,
    ProjectCode,
    ToolInput,
    api_call,
    parse_arguments,
)


class ListRunsInput(Pagination):
    code: ProjectCode
    search: str | None = Field(None, description="Search query for run title")
    status: str | None = Field(None, description='Filter by status (e.g., "active", "complete")')
    milestone: EntityId | None = Field(None, description="Filter by milestone ID")
    environment: EntityId | None = Field(None, description="Filter by environment ID")
    from_start_time: int | None = Field(None, description="Runs started after (Unix timestamp)")
    to_start_time: int | None = Field(None, description="Runs started before (Unix timestamp)")
    include: Literal["cases"] | None = Field(None, description="Include case details in runs")


class RunRefInput(ToolInput):
    code: ProjectCode
    id: EntityId


class GetRunInput(RunRefInput):
    include: Literal["cases"] | None = Field(None, description="Include case details")


class CreateRunInput(ToolInput):
    code: ProjectCode
    title: str = Field(min_length=1, max_length=255, description="Test run title")
    description: str | None = Field(None, description="Test run description")
    include_all_cases: bool | None = Field(None, description="Include every case in the project")
    cases: list[EntityId] | None = Field(None, description="Case IDs to include in the run")
    is_autotest: bool | None = Field(None, description="Mark the run as automated")
    environment_id: EntityId | None = Field(None, description="Environment ID")
    milestone_id: EntityId | None = Field(None, description="Milestone ID")
    plan_id: EntityId | None = Field(None, description="Test plan ID to build the run from")
    tags: list[str] | None = Field(None, description="Tags for the run")


async def list_runs(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(ListRunsInput, arguments)
    return await api_call(
        "listing runs",
        get_client().get(f"/v1/run/{args.code}", params=args.query("code")),
    )


async def get_run(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(GetRunInput, arguments)
    return await api_call(
        "getting run",
        get_client().get(f"/v1/run/{args.code}/{args.id}", params=args.query("code", "id")),
    )


async def create_run(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(CreateRunInput, arguments)
    return await api_call(
        "creating run",
        get_client().post(f"/v1/run/{args.code}", json=args.query("code")),
    )


async def complete_run(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(RunRefInput, arguments)
    await api_call(
        "completing run",
        get_client().post(f"/v1/run/{args.code}/{args.id}/complete"),
    )
    return {"success": True, "code": args.code, "id": args.id, "status": "complete"}


async def delete_run(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(RunRefInput, arguments)
    return await api_call("deleting run", get_client().delete(f"/v1/run/{args.code}/{args.id}"))


def register_tools(registry: ToolRegistry) -> None:
    registry.register(
        "list_runs",
        "Get all test runs in a project with optional filters and pagination",
        ListRunsInput,
        list_runs,
    )
    registry.register("get_run", "Get a specific test run by ID", GetRunInput, get_run)
    registry.register(
        "create_run",
        "Create a new test run from selected cases, a plan, or all cases",
        CreateRunInput,
        create_run,
    )
    registry.register(
        "complete_run",
        "Mark a test run as complete",
        RunRefInput,
        complete_run,
    )
    registry.register("delete_run", "Delete a test run by ID", RunRefInput, delete_run)

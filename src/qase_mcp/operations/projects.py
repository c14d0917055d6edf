"""Project tools: top-level containers for test management."""

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


class ListProjectsInput(Pagination):
    pass


class ProjectCodeInput(ToolInput):
    code: ProjectCode


class CreateProjectInput(ToolInput):
    title: str = Field(min_length=1, max_length=255, description="Project title")
    code: ProjectCode
    description: str | None = Field(None, description="Project description")
    access: Literal["none", "group", "all"] | None = Field(
        None,
        description="Project access level: none (private), group, or all (public)",
    )
    group: str | None = Field(None, description="Group hash for group access level")


class ProjectAccessInput(ToolInput):
    code: ProjectCode
    member_id: EntityId = Field(description="User or group ID")
    member_type: Literal["user", "group"] = Field(description="Type of member: user or group")


async def list_projects(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(ListProjectsInput, arguments)
    return await api_call("listing projects", get_client().get("/v1/project", params=args.query()))


async def get_project(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(ProjectCodeInput, arguments)
    return await api_call("getting project", get_client().get(f"/v1/project/{args.code}"))


async def create_project(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(CreateProjectInput, arguments)
    return await api_call("creating project", get_client().post("/v1/project", json=args.query()))


async def delete_project(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(ProjectCodeInput, arguments)
    await api_call("deleting project", get_client().delete(f"/v1/project/{args.code}"))
    return {"success": True, "code": args.code}


async def grant_project_access(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(ProjectAccessInput, arguments)
    await api_call(
        "granting project access",
        get_client().post(f"/v1/project/{args.code}/access", json={"member_id": args.member_id}),
    )
    return {
        "success": True,
        "code": args.code,
        "member_id": args.member_id,
        "member_type": args.member_type,
    }


async def revoke_project_access(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(ProjectAccessInput, arguments)
    await api_call(
        "revoking project access",
        get_client().delete(f"/v1/project/{args.code}/access", json={"member_id": args.member_id}),
    )
    return {
        "success": True,
        "code": args.code,
        "member_id": args.member_id,
        "member_type": args.member_type,
    }


def register_tools(registry: ToolRegistry) -> None:
    registry.register(
        "list_projects",
        "Get all projects with optional pagination",
        ListProjectsInput,
        list_projects,
    )
    registry.register(
        "get_project",
        "Get a specific project by project code",
        ProjectCodeInput,
        get_project,
    )
    registry.register(
        "create_project",
        "Create a new project in Qase",
        CreateProjectInput,
        create_project,
    )
    registry.register(
        "delete_project",
        "Delete a project by project code",
        ProjectCodeInput,
        delete_project,
    )
    registry.register(
        "grant_project_access",
        "Grant access to a project for a user or group",
        ProjectAccessInput,
        grant_project_access,
    )
    registry.register(
        "revoke_project_access",
        "Revoke access to a project from a user or group",
        ProjectAccessInput,
        revoke_project_access,
    )

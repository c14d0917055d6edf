"""Test case tools."""

from __future__ import annotations

from typing import Any

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


class ListCasesInput(Pagination):
    code: ProjectCode
    search: str | None = Field(None, description="Search query for test case title or description")
    milestone_id: EntityId | None = Field(None, description="Filter by milestone ID")
    suite_id: EntityId | None = Field(None, description="Filter by suite ID")
    severity: str | None = Field(None, description='Filter by severity (e.g., "blocker")')
    priority: str | None = Field(None, description='Filter by priority (e.g., "high")')
    type: str | None = Field(None, description='Filter by type (e.g., "functional", "smoke")')
    behavior: str | None = Field(None, description='Filter by behavior (e.g., "positive")')
    automation: str | None = Field(None, description="Filter by automation status")
    status: str | None = Field(None, description='Filter by status (e.g., "actual", "draft")')


class CaseRefInput(ToolInput):
    code: ProjectCode
    id: EntityId


class CaseStep(ToolInput):
    action: str = Field(description="Step action description")
    expected_result: str | None = Field(None, description="Expected result for this step")
    data: str | None = Field(None, description="Test data for this step")
    attachments: list[str] | None = Field(None, description="Array of attachment hashes")


class CaseFields(ToolInput):
    description: str | None = Field(None, description="Test case description")
    preconditions: str | None = Field(None, description="Preconditions for the test")
    postconditions: str | None = Field(None, description="Postconditions after the test")
    severity: str | None = Field(None, description='Test severity (e.g., "blocker", "major")')
    priority: str | None = Field(None, description='Test priority (e.g., "high", "low")')
    type: str | None = Field(None, description='Test type (e.g., "functional", "regression")')
    layer: str | None = Field(None, description='Test layer (e.g., "api", "ui", "unit")')
    is_flaky: bool | None = Field(None, description="Mark test case as flaky")
    suite_id: EntityId | None = Field(None, description="Suite ID to organize test case")
    milestone_id: EntityId | None = Field(None, description="Milestone ID")
    behavior: str | None = Field(None, description='Test behavior (e.g., "positive", "negative")')
    automation: str | None = Field(None, description="Automation status")
    status: str | None = Field(None, description='Test case status (e.g., "actual", "draft")')
    steps: list[CaseStep] | None = Field(None, description="Array of test steps")
    tags: list[str] | None = Field(None, description="Tags for categorization")
    custom_field: dict[str, Any] | None = Field(None, description="Custom field values")


class CreateCaseInput(CaseFields):
    code: ProjectCode
    title: str = Field(min_length=1, max_length=255, description="Test case title")


class UpdateCaseInput(CaseFields):
    code: ProjectCode
    id: EntityId
    title: str | None = Field(None, min_length=1, max_length=255, description="Test case title")


async def list_cases(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(ListCasesInput, arguments)
    return await api_call(
        "listing cases",
        get_client().get(f"/v1/case/{args.code}", params=args.query("code")),
    )


async def get_case(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(CaseRefInput, arguments)
    return await api_call("getting case", get_client().get(f"/v1/case/{args.code}/{args.id}"))


async def create_case(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(CreateCaseInput, arguments)
    return await api_call(
        "creating case",
        get_client().post(f"/v1/case/{args.code}", json=args.query("code")),
    )


async def update_case(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(UpdateCaseInput, arguments)
    return await api_call(
        "updating case",
        get_client().patch(f"/v1/case/{args.code}/{args.id}", json=args.query("code", "id")),
    )


async def delete_case(arguments: dict[str, Any]) -> JSONValue:
    args = parse_arguments(CaseRefInput, arguments)
    return await api_call("deleting case", get_client().delete(f"/v1/case/{args.code}/{args.id}"))


def register_tools(registry: ToolRegistry) -> None:
    registry.register(
        "list_cases",
        "Get all test cases in a project with optional filters and pagination",
        ListCasesInput,
        list_cases,
    )
    registry.register("get_case", "Get a specific test case by ID", CaseRefInput, get_case)
    registry.register(
        "create_case",
        "Create a new test case with optional steps, tags and custom fields",
        CreateCaseInput,
        create_case,
    )
    registry.register(
        "update_case",
        "Update an existing test case; only provided fields change",
        UpdateCaseInput,
        update_case,
    )
    registry.register("delete_case", "Delete a test case by ID", CaseRefInput, delete_case)

"""Error taxonomy and Qase API error formatting.

Protocol errors (unknown tool, malformed session) propagate to the transport.
Tool execution errors are recoverable and are returned to the caller as
``isError`` results so the model can read them and correct its request.
"""

from __future__ import annotations

from typing import Any

import httpx

from qase_mcp.core.config import TOKEN_HELP_URL


class QaseMCPError(Exception):
    """Base exception for all server errors."""


class QaseConfigurationError(QaseMCPError):
    """Required process configuration is missing or invalid."""


class QaseApiError(QaseMCPError):
    """Error reported by the Qase API outside of an HTTP status failure."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details


class ToolExecutionError(QaseMCPError):
    """Expected failure during tool execution, reported back with ``isError: true``."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def to_user_message(self) -> str:
        """Format the error message for LLM consumption."""
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class UnknownToolError(QaseMCPError, LookupError):
    """Protocol error: the requested tool is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}. Use tools/list to see available tools.")
        self.name = name


def format_api_error(error: BaseException) -> str:
    """Format an API or handler error into a user-friendly message."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        message = _response_message(error.response) or str(error)

        if status == 401:
            return (
                f"Authentication failed: {message}. "
                "Please check your QASE_API_TOKEN environment variable."
            )
        if status == 403:
            return (
                f"Access forbidden: {message}. "
                "You don't have permission to perform this action."
            )
        if status == 404:
            return f"Resource not found: {message}"
        if status == 400:
            return f"Invalid request: {message}"
        if status == 422:
            return f"Validation error: {message}"
        if status == 429:
            return f"Rate limit exceeded: {message}. Please try again later."
        if status in {500, 502, 503, 504}:
            return f"Qase API server error: {message}. Please try again later."
        return message or "Unknown API error occurred"

    if isinstance(error, httpx.TimeoutException):
        return f"Qase API request timed out: {error}"
    if isinstance(error, httpx.RequestError):
        return f"Could not reach the Qase API: {error}"

    if isinstance(error, ToolExecutionError):
        return error.to_user_message()

    return str(error) or type(error).__name__


def create_tool_error(
    error: str,
    context: str | None = None,
    cause: BaseException | None = None,
) -> ToolExecutionError:
    """Create a ToolExecutionError with a recovery suggestion.

    When ``cause`` carries an HTTP status the suggestion is chosen by status;
    otherwise it is inferred from the wording of ``error``.
    """
    suggestion = _suggestion_for_status(cause, context) if cause is not None else None
    return ToolExecutionError(error, suggestion or _suggestion_for_error(error, context))


def is_authentication_error(error: BaseException) -> bool:
    return _status_of(error) == 401


def is_not_found_error(error: BaseException) -> bool:
    return _status_of(error) == 404


def is_validation_error(error: BaseException) -> bool:
    return _status_of(error) in {400, 422}


def is_rate_limit_error(error: BaseException) -> bool:
    return _status_of(error) == 429


def _status_of(error: BaseException) -> int | None:
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def _response_message(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return response.text or None
    if isinstance(data, dict):
        for key in ("errorMessage", "message"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return None


_AUTH_SUGGESTION = (
    "Check that QASE_API_TOKEN environment variable is set correctly. "
    f"Tokens are issued at {TOKEN_HELP_URL}."
)
_FORBIDDEN_SUGGESTION = "Verify you have the required permissions for this operation."
_NOT_FOUND_SUGGESTION = (
    "Verify the resource exists. Use the appropriate list or get tool to check."
)
_RATE_LIMIT_SUGGESTION = "Wait a moment and try again, or reduce the frequency of requests."
_TRANSIENT_SUGGESTION = "This is a temporary server issue. Please try again later."


def _validation_suggestion(context: str | None) -> str:
    if context and "project" in context:
        return (
            "The project code may already exist, or the input data is invalid. "
            "Use list_projects or get_project to check existing projects."
        )
    if context and "case" in context:
        return (
            "Verify the project code exists and the case data is valid. "
            "Use get_project to check the project."
        )
    if context and "run" in context:
        return "Verify the project code exists and the run configuration is valid."
    return "Check that all required fields are provided and values are in the correct format."


def _suggestion_for_status(error: BaseException, context: str | None) -> str | None:
    status = _status_of(error)
    if status is None:
        return None
    if is_authentication_error(error):
        return _AUTH_SUGGESTION
    if status == 403:
        return _FORBIDDEN_SUGGESTION
    if is_not_found_error(error):
        return _NOT_FOUND_SUGGESTION
    if is_validation_error(error):
        return _validation_suggestion(context)
    if is_rate_limit_error(error):
        return _RATE_LIMIT_SUGGESTION
    if status >= 500:
        return _TRANSIENT_SUGGESTION
    return None


def _suggestion_for_error(error: str, context: str | None) -> str | None:
    lowered = error.lower()

    if "authentication failed" in lowered or "401" in lowered:
        return _AUTH_SUGGESTION

    if "forbidden" in lowered or "403" in lowered:
        return _FORBIDDEN_SUGGESTION

    if "not found" in lowered or "404" in lowered:
        return _NOT_FOUND_SUGGESTION

    if "invalid" in lowered or "validation" in lowered:
        return _validation_suggestion(context)

    if "rate limit" in lowered or "429" in lowered:
        return _RATE_LIMIT_SUGGESTION

    if "server error" in lowered or "timed out" in lowered or "could not reach" in lowered:
        return _TRANSIENT_SUGGESTION

    return None

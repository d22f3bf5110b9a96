"""Exception taxonomy for the MCP News Server.

Every failure is scoped to a single request. The dispatcher converts
these into ``DispatchResult`` envelopes; only ``InvalidToken`` is
surfaced by the HTTP layer as a 401.
"""

from typing import Optional


class MCPServerError(Exception):
    """Base exception for MCP News Server errors."""
    error_code = "ERROR"


class SchemaViolation(MCPServerError):
    """Input or configuration failed schema validation."""
    error_code = "VALIDATION_ERROR"

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(f"Validation failed: {'; '.join(self.errors)}")


class InvalidToken(MCPServerError):
    """Session token could not be turned into a session."""
    error_code = "INVALID_TOKEN"


class NotFound(MCPServerError):
    """No tool, resource or prompt registered under the requested name."""
    error_code = "NOT_FOUND"

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind.capitalize()} '{name}' not found")


class Unauthorized(MCPServerError):
    """Session lacks a role required by the descriptor."""
    error_code = "UNAUTHORIZED"

    def __init__(self, missing_roles: list[str]) -> None:
        self.missing_roles = list(missing_roles)
        super().__init__(f"Required roles: {', '.join(self.missing_roles)}")


class UpstreamBusinessError(MCPServerError):
    """Third-party API answered with a structured error payload."""
    error_code = "UPSTREAM_ERROR"


class UnexpectedFailure(MCPServerError):
    """A handler raised; the message has already been sanitized."""
    error_code = "EXECUTION_ERROR"

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)

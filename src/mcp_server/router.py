"""Dispatcher for the MCP News Server.

Routes a (kind, name) request to its registered handler.
Handles lookup, validation, authorization, execution and auditing,
and guarantees that no unsanitized error text leaves this module.
"""

import time
from collections.abc import Mapping
from typing import Any, Optional

from shared.errors import (
    MCPServerError,
    NotFound,
    SchemaViolation,
    Unauthorized,
    UnexpectedFailure,
)
from shared.logging import get_logger
from shared.models import (
    Descriptor,
    DescriptorKind,
    DispatchResult,
    RequestContext,
    ResultStatus,
    ToolResponse,
)
from shared.sanitize import sanitize_error_for_response
from shared.schema import apply_schema
from mcp_server.audit import AuditLogger
from mcp_server.auth import ROLES, RolePredicate, missing_roles
from mcp_server.registry import Registry

logger = get_logger(__name__)


class Dispatcher:
    """
    Routes requests to descriptor handlers.

    Responsibilities:
    - Look up descriptors (NotFound)
    - Validate input against the descriptor schema (SchemaViolation)
    - Check required roles (Unauthorized)
    - Run the handler and sanitize anything it raises
    - Audit every dispatch
    """

    def __init__(
        self,
        registry: Registry,
        audit_logger: Optional[AuditLogger] = None,
        roles: Mapping[str, RolePredicate] = ROLES,
        max_error_length: int = 200
    ) -> None:
        self.registry = registry
        self.audit_logger = audit_logger or AuditLogger(enabled=False)
        self.roles = roles
        self.max_error_length = max_error_length

    async def dispatch(
        self,
        kind: DescriptorKind,
        name: str,
        raw_input: Optional[dict[str, Any]],
        context: RequestContext
    ) -> DispatchResult:
        """
        Dispatch a request.

        Never raises for request-level failures; every outcome is a
        DispatchResult.

        Args:
            kind: Descriptor kind
            name: Descriptor name (or URI, for resources)
            raw_input: Unvalidated input
            context: Request context bundle

        Returns:
            Dispatch result
        """
        kind = DescriptorKind(kind)
        start_time = time.perf_counter()

        logger.debug(
            "Dispatching",
            kind=kind.value,
            name=name,
            request_id=context.request_id
        )

        descriptor = self.registry.get(kind, name)
        if descriptor is None:
            error = NotFound(kind.value, name)
            result = self._failure(kind, name, ResultStatus.NOT_FOUND, error, context)
            await self._finish(result, raw_input, context, start_time)
            return result

        try:
            params = apply_schema(raw_input, descriptor.input_schema)
        except SchemaViolation as e:
            result = self._failure(kind, descriptor.name, ResultStatus.VALIDATION_ERROR, e, context)
            await self._finish(result, raw_input, context, start_time)
            return result

        missing = missing_roles(context.session, descriptor.required_roles, self.roles)
        if missing:
            logger.warning(
                "Access denied",
                kind=kind.value,
                name=descriptor.name,
                required_roles=missing
            )
            result = self._failure(
                kind, descriptor.name, ResultStatus.UNAUTHORIZED, Unauthorized(missing), context
            )
            await self._finish(result, params, context, start_time)
            return result

        try:
            data = await descriptor.handler(params, context)
            result = DispatchResult(
                kind=kind,
                name=descriptor.name,
                status=ResultStatus.SUCCESS,
                data=data,
                request_id=context.request_id,
            )
        except Exception as e:
            result = self._handler_failure(descriptor, e, context)

        await self._finish(result, params, context, start_time)
        return result

    def _handler_failure(
        self,
        descriptor: Descriptor,
        error: Exception,
        context: RequestContext
    ) -> DispatchResult:
        """Turn a raised exception into a sanitized error result."""
        message = sanitize_error_for_response(
            context.secrets.redact(str(error) or type(error).__name__),
            self.max_error_length
        )
        failure = UnexpectedFailure(message, cause=error)

        logger.error(
            "Handler failed",
            kind=descriptor.kind.value,
            name=descriptor.name,
            error_type=type(error).__name__,
            error=message,
            request_id=context.request_id
        )

        data = None
        if descriptor.kind == DescriptorKind.TOOL:
            data = ToolResponse.text(f"Error: {message}", is_error=True)

        return DispatchResult(
            kind=descriptor.kind,
            name=descriptor.name,
            status=ResultStatus.ERROR,
            data=data,
            error=str(failure),
            error_code=failure.error_code,
            request_id=context.request_id,
        )

    def _failure(
        self,
        kind: DescriptorKind,
        name: str,
        status: ResultStatus,
        error: MCPServerError,
        context: RequestContext
    ) -> DispatchResult:
        # Names and schema messages can echo caller input
        message = sanitize_error_for_response(error, self.max_error_length)
        return DispatchResult(
            kind=kind,
            name=name,
            status=status,
            error=message,
            error_code=error.error_code,
            request_id=context.request_id,
        )

    async def _finish(
        self,
        result: DispatchResult,
        params: Optional[dict[str, Any]],
        context: RequestContext,
        start_time: float
    ) -> None:
        result.execution_time_ms = (time.perf_counter() - start_time) * 1000
        try:
            await self.audit_logger.log(result, params, context)
        except Exception as e:
            # Auditing must not turn a finished request into a failure
            logger.error("Audit logging failed", error=str(e))

    async def call_tool(
        self, name: str, arguments: Optional[dict[str, Any]], context: RequestContext
    ) -> DispatchResult:
        return await self.dispatch(DescriptorKind.TOOL, name, arguments, context)

    async def read_resource(self, uri: str, context: RequestContext) -> DispatchResult:
        return await self.dispatch(DescriptorKind.RESOURCE, uri, {}, context)

    async def get_prompt(
        self, name: str, arguments: Optional[dict[str, Any]], context: RequestContext
    ) -> DispatchResult:
        return await self.dispatch(DescriptorKind.PROMPT, name, arguments, context)

"""Audit trail for the MCP News Server.

One JSON line per dispatch: who asked, for which tool, resource or
prompt, with which parameters, how long it took and how it ended.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import AuditEntry, DispatchResult, RequestContext, ToolResponse

logger = get_logger(__name__)

REDACTED = "[REDACTED]"
SENSITIVE_NAMES = frozenset({"password", "token", "secret", "api_key", "apikey", "credential"})


def redact_parameters(params: dict[str, Any]) -> dict[str, Any]:
    """Mask values whose key names look sensitive, recursing into objects."""
    return {
        key: REDACTED if key.lower() in SENSITIVE_NAMES
        else redact_parameters(value) if isinstance(value, dict)
        else value
        for key, value in params.items()
    }


class AuditLogger:
    """
    Buffered JSON lines audit writer.

    Error text in a result is already sanitized by the dispatcher; only
    parameter values need masking here.
    """

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        buffer_size: int = 100
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.buffer_size = max(1, buffer_size)
        self._pending: list[AuditEntry] = []
        self._lock = asyncio.Lock()

        if enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def create_entry(
        self,
        result: DispatchResult,
        parameters: Optional[dict[str, Any]],
        context: RequestContext
    ) -> AuditEntry:
        session = context.session
        return AuditEntry(
            id=uuid.uuid4().hex,
            user_email=session.email if session else None,
            workspace_id=context.workspace_id,
            kind=result.kind,
            name=result.name,
            parameters=redact_parameters(parameters) if isinstance(parameters, dict) else {},
            status=result.status,
            business_error=isinstance(result.data, ToolResponse) and result.data.is_error,
            error=result.error,
            execution_time_ms=result.execution_time_ms,
            request_id=context.request_id,
        )

    async def log(
        self,
        result: DispatchResult,
        parameters: Optional[dict[str, Any]],
        context: RequestContext
    ) -> None:
        """Queue an entry for a finished dispatch; writes once the buffer fills."""
        if not self.enabled:
            return

        entry = self.create_entry(result, parameters, context)
        logger.info(
            "Dispatch audited",
            audit_id=entry.id,
            user=entry.user_email,
            kind=entry.kind.value,
            name=entry.name,
            status=entry.status.value,
            business_error=entry.business_error,
            execution_time_ms=round(entry.execution_time_ms, 2),
        )

        async with self._lock:
            self._pending.append(entry)
            if len(self._pending) >= self.buffer_size:
                await self._write_pending()

    async def flush(self) -> None:
        """Write whatever is buffered."""
        async with self._lock:
            await self._write_pending()

    async def _write_pending(self) -> None:
        if not self._pending:
            return

        batch, self._pending = self._pending, []
        lines = "".join(entry.model_dump_json() + "\n" for entry in batch)

        try:
            async with aiofiles.open(self.log_path, "a") as f:
                await f.write(lines)
        except OSError as e:
            logger.error("Audit write failed", path=str(self.log_path), error=str(e))
            # Retried on the next write
            self._pending = batch + self._pending

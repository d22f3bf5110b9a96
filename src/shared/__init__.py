"""Shared models, configuration, validation and logging for the MCP News Server."""

from shared.models import (
    Descriptor,
    DescriptorKind,
    DispatchResult,
    RequestContext,
    Session,
    ToolResponse,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging
from shared.sanitize import sanitize_error

__all__ = [
    "Descriptor",
    "DescriptorKind",
    "DispatchResult",
    "RequestContext",
    "Session",
    "ToolResponse",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "sanitize_error",
]

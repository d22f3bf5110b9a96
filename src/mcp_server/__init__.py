"""MCP News Server - registry, authentication, dispatch and auditing.

Domains register descriptors at startup; the dispatcher routes each
request to its handler and sanitizes every failure.
"""

from mcp_server.registry import Registry
from mcp_server.router import Dispatcher
from mcp_server.auth import ROLES, SessionAuthenticator, authorize
from mcp_server.audit import AuditLogger

__all__ = [
    "Registry",
    "Dispatcher",
    "ROLES",
    "SessionAuthenticator",
    "authorize",
    "AuditLogger",
]

"""Server assembly.

Builds the frozen registry, the dispatcher and the authenticator, and
creates per-request contexts. Holds no per-request state.
"""

import uuid
from collections.abc import Mapping
from typing import Any, Optional

from shared.config import CONFIG_SCHEMA, ServerSettings, Settings
from shared.logging import get_logger
from shared.models import DescriptorKind, RequestContext, Session
from shared.secrets import Secrets
from mcp_server.audit import AuditLogger
from mcp_server.auth import ROLES, SessionAuthenticator
from mcp_server.registry import Registry
from mcp_server.router import Dispatcher

logger = get_logger(__name__)

SERVER_NAME = "mcp-news-server"
SERVER_VERSION = "0.1.0"
SERVER_DESCRIPTION = (
    "MCP server for news headlines and articles from NewsAPI. Provides tools for searching "
    "news by topic, getting top headlines by country/category, listing available news "
    "sources, personalized user greetings and AI-assisted text operations."
)


def build_registry(
    settings: Optional[ServerSettings] = None,
    news_client_factory=None,
    ai_client_factory=None
) -> Registry:
    """Register every domain and freeze the registry."""
    from domains import load_all_domains

    registry = Registry()
    load_all_domains(
        registry,
        settings,
        news_client_factory=news_client_factory,
        ai_client_factory=ai_client_factory,
    )
    return registry.freeze()


def server_metadata(registry: Registry, settings: ServerSettings) -> dict[str, Any]:
    """Static description of the server; needs no resolved config."""
    return {
        "name": SERVER_NAME,
        "version": SERVER_VERSION,
        "description": SERVER_DESCRIPTION,
        "configSchema": CONFIG_SCHEMA,
        "tools": registry.describe(DescriptorKind.TOOL),
        "resources": registry.describe(DescriptorKind.RESOURCE),
        "prompts": registry.describe(DescriptorKind.PROMPT),
        "roles": list(ROLES),
        "contextHeaders": list(settings.context_headers),
        "requireSession": False,
    }


class MCPNewsServer:
    """
    The assembled server.

    Config is resolved before construction and never changes; secrets
    come from the host.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        settings: Optional[Settings] = None,
        secrets: Optional[Secrets] = None,
        registry: Optional[Registry] = None,
        audit_logger: Optional[AuditLogger] = None,
        authenticator: Optional[SessionAuthenticator] = None
    ) -> None:
        self.settings = settings or Settings()
        self.config = config
        self.secrets = secrets or Secrets()
        self.registry = registry or build_registry(self.settings.server)
        if not self.registry.frozen:
            self.registry.freeze()
        self.audit_logger = audit_logger or AuditLogger(
            log_path=self.settings.server.audit_log_path,
            enabled=self.settings.server.enable_audit,
        )
        self.dispatcher = Dispatcher(self.registry, self.audit_logger)
        self.authenticator = authenticator or SessionAuthenticator(
            self.settings.server.auth_secret_key
        )

    def create_context(
        self,
        session: Optional[Session] = None,
        context_headers: Optional[Mapping[str, str]] = None,
        workspace_id: Optional[str] = None,
        project_root: Optional[str] = None,
        request_id: Optional[str] = None
    ) -> RequestContext:
        """Build the context bundle for one request."""
        allowed = set(self.settings.server.context_headers)
        headers = {
            key: value
            for key, value in (context_headers or {}).items()
            if key in allowed
        }
        return RequestContext(
            request_id=request_id or str(uuid.uuid4()),
            config=self.config,
            session=session,
            secrets=self.secrets,
            context_headers=headers,
            workspace_id=workspace_id,
            project_root=project_root,
        )

    def metadata(self) -> dict[str, Any]:
        return server_metadata(self.registry, self.settings.server)

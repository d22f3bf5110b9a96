"""Application Domains.

Each domain contains:
- Descriptor definitions (tools, resources, prompts)
- Handlers taking (validated input, RequestContext)

Domains share no state; everything per request arrives in the context.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from mcp_server.registry import Registry
    from shared.config import ServerSettings


def load_all_domains(
    registry: "Registry",
    settings: Optional["ServerSettings"] = None,
    news_client_factory=None,
    ai_client_factory=None,
) -> None:
    """
    Register every domain.

    Called once at startup, before the registry is frozen. Client
    factories are injectable for tests.
    """
    from domains.greeting import register_greeting_domain
    from domains.news import register_news_domain
    from domains.ai import register_ai_domain

    register_greeting_domain(registry)
    register_news_domain(registry, settings, news_client_factory)
    register_ai_domain(registry, settings, ai_client_factory)


__all__ = ["load_all_domains"]

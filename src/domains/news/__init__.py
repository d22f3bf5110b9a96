"""News Domain - NewsAPI headlines, search and sources.

Provides:
- get_news tool (search or top headlines)
- news_sources and context_info resources
- get_news_about prompt
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from shared.config import ServerSettings
from shared.errors import UpstreamBusinessError
from shared.logging import get_logger
from shared.models import (
    Descriptor,
    PromptResponse,
    RequestContext,
    ResourceResponse,
    ToolResponse,
)
from shared.secrets import NEWSAPI_KEY
from domains.base import BaseDomain
from domains.news.client import CATEGORIES, NewsAPIClient
from mcp_server.auth import granted_roles

logger = get_logger(__name__)

MISSING_KEY_MESSAGE = (
    f"Error: NewsAPI key not found. Please set {NEWSAPI_KEY} environment variable."
)
REGISTER_HINT = "Get your free API key at: https://newsapi.org/register"

NewsClientFactory = Callable[[str], NewsAPIClient]


def format_articles(articles: list, query: Optional[str]) -> str:
    """Numbered article list with a heading."""
    lines = [
        f"{index}. {article.title}\n"
        f"   Source: {(article.source.name if article.source else None) or 'Unknown'}\n"
        f"   {article.url}"
        for index, article in enumerate(articles, start=1)
    ]
    listing = "\n\n".join(lines)

    if query:
        return f'Found {len(articles)} articles for "{query}":\n\n{listing}'
    return f"Top {len(articles)} headlines:\n\n{listing}"


class NewsDomain(BaseDomain):
    """
    News Domain.

    All upstream access goes through a NewsAPIClient built per request
    from the request's secrets.
    """

    name = "news"

    def __init__(
        self,
        settings: Optional[ServerSettings] = None,
        client_factory: Optional[NewsClientFactory] = None
    ) -> None:
        self.settings = settings or ServerSettings()
        self._client_factory = client_factory or self._default_client

    def _default_client(self, api_key: str) -> NewsAPIClient:
        return NewsAPIClient(
            api_key,
            base_url=self.settings.newsapi_base_url,
            timeout=self.settings.http_timeout_seconds
        )

    def descriptors(self) -> list[Descriptor]:
        return [
            self._tool(
                "get_news",
                "Get news headlines from NewsAPI. Supports top headlines by country/category "
                "or search by query. Requires SECRET_NEWSAPI_KEY environment variable.",
                self.get_news,
                input_schema={
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": 'Search query (e.g., "bitcoin", "technology"). '
                                           "If not provided, returns top headlines"
                        },
                        "country": {
                            "type": "string",
                            "description": 'ISO 3166-1 alpha-2 country code (e.g., "us", "gb"). '
                                           "Only for top headlines"
                        },
                        "category": {
                            "type": "string",
                            "enum": CATEGORIES,
                            "description": "News category. Only for top headlines"
                        },
                        "pageSize": {
                            "type": "integer",
                            "default": 10,
                            "minimum": 1,
                            "maximum": 100,
                            "description": "Number of articles to return (1-100)"
                        }
                    },
                    "required": []
                },
            ),
            self._resource(
                "news_sources",
                "sources",
                "List of available news sources from NewsAPI",
                self.news_sources,
            ),
            self._resource(
                "context_info",
                "context",
                "Shows current request context including workspace ID, project root, "
                "and custom context headers",
                self.context_info,
            ),
            self._prompt(
                "get_news_about",
                "Template for getting news about a specific topic",
                self.get_news_about,
                arguments={
                    "type": "object",
                    "properties": {
                        "topic": {
                            "type": "string",
                            "description": 'Topic to search news for (e.g., "climate change")'
                        }
                    },
                    "required": ["topic"]
                },
            ),
        ]

    async def get_news(self, params: dict[str, Any], context: RequestContext) -> ToolResponse:
        api_key = context.secrets.get(NEWSAPI_KEY)
        if not api_key:
            return ToolResponse.text(f"{MISSING_KEY_MESSAGE}\n\n{REGISTER_HINT}", is_error=True)

        query = params.get("query")
        page_size = min(params["pageSize"], context.config.get("maxItems", params["pageSize"]))
        client = self._client_factory(api_key)

        try:
            if query:
                data = await client.everything(query, page_size)
            else:
                data = await client.top_headlines(
                    page_size, params.get("country"), params.get("category")
                )
        except UpstreamBusinessError as e:
            return ToolResponse.text(f"NewsAPI Error: {e}", is_error=True)
        except httpx.TimeoutException:
            return ToolResponse.text(
                "Error fetching news: NewsAPI did not answer in time. Please try again.",
                is_error=True
            )

        if not data.articles:
            return ToolResponse.text("No articles found for your query.")

        return ToolResponse.text(format_articles(data.articles, query))

    async def news_sources(self, params: dict[str, Any], context: RequestContext) -> ResourceResponse:
        uri = "sources"
        api_key = context.secrets.get(NEWSAPI_KEY)
        if not api_key:
            return ResourceResponse.text(uri, MISSING_KEY_MESSAGE)

        try:
            data = await self._client_factory(api_key).sources()
        except UpstreamBusinessError as e:
            return ResourceResponse.text(uri, f"Error: {e}")

        listing = "\n\n".join(
            f"- {source.name} ({source.id})\n"
            f"  Category: {source.category}\n"
            f"  Country: {source.country}\n"
            f"  Language: {source.language}"
            for source in data.sources
        )
        return ResourceResponse.text(
            uri, f"Available News Sources ({len(data.sources)}):\n\n{listing}"
        )

    async def context_info(self, params: dict[str, Any], context: RequestContext) -> ResourceResponse:
        headers = "\n".join(
            f"  - {key}: {value}" for key, value in context.context_headers.items()
        ) or "  (no context headers configured)"

        if context.session:
            roles = ", ".join(granted_roles(context.session)) or "(none)"
            session = f"{context.session.email}\nRoles: {roles}"
        else:
            session = "(anonymous)"

        text = (
            "Request Context Information\n"
            "===========================\n\n"
            f"Workspace ID: {context.workspace_id or '(not set)'}\n"
            f"Project Root: {context.project_root or '(not set)'}\n\n"
            f"Session: {session}\n\n"
            f"Custom Context Headers:\n{headers}\n\n"
            f"Timestamp: {datetime.now(timezone.utc).isoformat()}"
        )
        return ResourceResponse.text("context", text)

    async def get_news_about(self, params: dict[str, Any], context: RequestContext) -> PromptResponse:
        return PromptResponse.user_message(
            f'Please get the latest news about "{params["topic"]}" using the get_news tool. '
            "Return the top 5 most relevant articles."
        )


def register_news_domain(
    registry,
    settings: Optional[ServerSettings] = None,
    client_factory: Optional[NewsClientFactory] = None
) -> NewsDomain:
    """Register the news domain."""
    domain = NewsDomain(settings, client_factory)
    domain.register(registry)
    return domain

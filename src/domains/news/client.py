"""NewsAPI client.

Thin async wrapper over the three NewsAPI endpoints the news domain
uses. An ``"error"`` status in the body is raised as
``UpstreamBusinessError`` with NewsAPI's own message.
"""

from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from shared.errors import UpstreamBusinessError
from shared.logging import get_logger

logger = get_logger(__name__)

CATEGORIES = ["business", "entertainment", "general", "health", "science", "sports", "technology"]


class ArticleSource(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class Article(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    source: Optional[ArticleSource] = None


class NewsSource(BaseModel):
    id: Optional[str] = None
    name: str = ""
    category: Optional[str] = None
    country: Optional[str] = None
    language: Optional[str] = None


class NewsResponse(BaseModel):
    status: str
    message: Optional[str] = None
    articles: list[Article] = Field(default_factory=list)
    sources: list[NewsSource] = Field(default_factory=list)


class NewsAPIClient:
    """
    Client for NewsAPI v2.

    A fresh httpx client is used per call; nothing is shared between
    requests.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://newsapi.org/v2",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def everything(self, query: str, page_size: int) -> NewsResponse:
        """Search all articles."""
        return await self._get("/everything", {
            "q": query,
            "pageSize": page_size,
        })

    async def top_headlines(
        self,
        page_size: int,
        country: Optional[str] = None,
        category: Optional[str] = None
    ) -> NewsResponse:
        """Top headlines, optionally by country and category."""
        params: dict[str, Any] = {"pageSize": page_size}
        if country:
            params["country"] = country
        if category:
            params["category"] = category
        return await self._get("/top-headlines", params)

    async def sources(self) -> NewsResponse:
        """Every source NewsAPI knows."""
        return await self._get("/sources", {})

    async def _get(self, path: str, params: dict[str, Any]) -> NewsResponse:
        """
        GET an endpoint and decode the NewsAPI envelope.

        Raises:
            UpstreamBusinessError: If NewsAPI reports ``status: error``
            httpx.HTTPError: On transport failures
        """
        params = {**params, "apiKey": self.api_key}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(f"{self.base_url}{path}", params=params)

        # NewsAPI reports failures in the body, with a 4xx status
        data = NewsResponse.model_validate(response.json())

        if data.status == "error":
            logger.info("NewsAPI returned an error", path=path, http_status=response.status_code)
            raise UpstreamBusinessError(data.message or "Unknown error")

        return data

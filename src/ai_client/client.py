"""AI proxy client.

Talks to an OpenAI-compatible proxy run by the hosting manager, so
individual servers never hold provider API keys. Failures surface as
``AIClientError`` with a fixed code.
"""

import time
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from shared.logging import get_logger
from shared.secrets import AI_PROXY_TOKEN, AI_PROXY_URL

logger = get_logger(__name__)


class AIErrorCode(str, Enum):
    NOT_CONFIGURED = "NOT_CONFIGURED"
    UNAUTHORIZED = "UNAUTHORIZED"
    RATE_LIMITED = "RATE_LIMITED"
    API_ERROR = "API_ERROR"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"


class AIClientError(Exception):
    """AI proxy call failed."""

    def __init__(self, code: AIErrorCode, message: str) -> None:
        self.code = AIErrorCode(code)
        self.message = message
        super().__init__(message)


class CompletionOptions(BaseModel):
    """Per-call completion parameters."""
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    model: Optional[str] = None


class ModelInfo(BaseModel):
    id: str
    owned_by: Optional[str] = None


class ModelList(BaseModel):
    data: list[ModelInfo] = Field(default_factory=list)


class AIClient:
    """
    Client for the AI proxy.

    Provides:
    - Configuration and health checks
    - Chat completions, with or without a system prompt
    - Model listing
    """

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 60.0,
        model: Optional[str] = None,
        availability_ttl: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        """
        Initialize the AI client.

        Args:
            proxy_url: Proxy base URL
            token: Bearer token for the proxy
            timeout: Request timeout in seconds
            model: Default model, if the proxy needs one
            availability_ttl: Seconds a health check result is reused
            transport: Optional httpx transport (tests)
        """
        self.proxy_url = proxy_url.rstrip("/") if proxy_url else None
        self._token = token
        self.timeout = timeout
        self.model = model
        self.availability_ttl = availability_ttl
        self._transport = transport
        self._available: Optional[bool] = None
        self._checked_at = 0.0

    @classmethod
    def from_secrets(cls, secrets: Mapping[str, str], **kwargs: Any) -> "AIClient":
        """Build a client from the request's secrets view."""
        return cls(
            proxy_url=secrets.get(AI_PROXY_URL),
            token=secrets.get(AI_PROXY_TOKEN),
            **kwargs
        )

    def is_configured(self) -> bool:
        """Both proxy URL and token are present."""
        return bool(self.proxy_url and self._token)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.proxy_url or "",
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self._token}"},
            transport=self._transport
        )

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def _probe(self) -> bool:
        async with self._client() as client:
            response = await client.get("/health")
        return response.is_success

    async def is_available(self, force_recheck: bool = False) -> bool:
        """
        Check the proxy health endpoint.

        The result is reused for ``availability_ttl`` seconds unless
        ``force_recheck`` is set.
        """
        if not self.is_configured():
            return False

        now = time.monotonic()
        if (
            not force_recheck
            and self._available is not None
            and now - self._checked_at < self.availability_ttl
        ):
            return self._available

        try:
            self._available = await self._probe()
        except httpx.HTTPError as e:
            logger.warning("AI proxy health check failed", error=str(e))
            self._available = False

        self._checked_at = now
        return self._available

    async def complete(self, prompt: str, options: Optional[CompletionOptions] = None) -> str:
        """Complete a single user prompt."""
        return await self._chat([{"role": "user", "content": prompt}], options)

    async def complete_with_system(
        self,
        system_prompt: str,
        prompt: str,
        options: Optional[CompletionOptions] = None
    ) -> str:
        """Complete a user prompt under a system prompt."""
        return await self._chat(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            options
        )

    async def get_models(self) -> ModelList:
        """List models offered by the proxy."""
        data = await self._request("GET", "/v1/models")
        try:
            return ModelList.model_validate(data)
        except ValidationError:
            raise AIClientError(AIErrorCode.API_ERROR, "Malformed model list from AI proxy")

    async def _chat(
        self,
        messages: list[dict[str, str]],
        options: Optional[CompletionOptions]
    ) -> str:
        options = options or CompletionOptions()
        payload: dict[str, Any] = {"messages": messages}
        model = options.model or self.model
        if model:
            payload["model"] = model
        if options.temperature is not None:
            payload["temperature"] = options.temperature
        if options.max_tokens is not None:
            payload["max_tokens"] = options.max_tokens

        data = await self._request("POST", "/v1/chat/completions", json=payload)

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise AIClientError(AIErrorCode.API_ERROR, "Malformed completion from AI proxy")

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """
        Send a request to the proxy and decode the JSON body.

        Raises:
            AIClientError: On any failure, with a fixed code
        """
        if not self.is_configured():
            raise AIClientError(AIErrorCode.NOT_CONFIGURED, "AI proxy is not configured")

        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException:
            raise AIClientError(AIErrorCode.TIMEOUT, "AI request timed out")
        except httpx.TransportError as e:
            raise AIClientError(AIErrorCode.NETWORK_ERROR, f"Cannot reach AI proxy: {e.__class__.__name__}")

        if response.status_code in (401, 403):
            raise AIClientError(AIErrorCode.UNAUTHORIZED, "AI proxy rejected the token")
        if response.status_code == 429:
            raise AIClientError(AIErrorCode.RATE_LIMITED, "AI proxy rate limit reached")
        if response.is_error:
            raise AIClientError(AIErrorCode.API_ERROR, _error_message(response))

        try:
            return response.json()
        except ValueError:
            raise AIClientError(AIErrorCode.API_ERROR, "AI proxy returned invalid JSON")


def _error_message(response: httpx.Response) -> str:
    """Best-effort error text from an OpenAI-style error body."""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
        if body.get("message"):
            return str(body["message"])
    return f"HTTP {response.status_code}"

"""AI Domain - text tools backed by the AI proxy.

Provides summarize, translate, sentiment, chat and status tools.
Every tool checks configuration and availability first and reports
problems as business failures; proxy errors map to fixed messages.
"""

from typing import Any, Callable, Optional

from ai_client import AIClient, AIClientError, AIErrorCode, CompletionOptions
from shared.config import ServerSettings
from shared.logging import get_logger
from shared.models import Descriptor, RequestContext, ToolResponse
from shared.secrets import AI_PROXY_TOKEN, AI_PROXY_URL, Secrets
from domains.base import BaseDomain

logger = get_logger(__name__)

AIClientFactory = Callable[[Secrets], AIClient]

NOT_CONFIGURED_DETAILED = """⚠️ AI is not configured.

To use AI features:
1. Open MCP Manager settings
2. Configure an AI provider (OpenAI, OpenRouter, or Ollama)
3. Add your API key
4. Restart the server

The AI proxy provides secure access to AI models without exposing API keys to individual servers."""

NOT_AVAILABLE_DETAILED = """⚠️ AI proxy is not available.

The AI proxy endpoint is configured but not responding.
Please check:
1. MCP Manager is running
2. AI provider is properly configured
3. API key is valid"""

NOT_AVAILABLE = "⚠️ AI proxy is not available. Please check MCP Manager settings."

ERROR_MESSAGES = {
    AIErrorCode.NOT_CONFIGURED: "AI proxy is not configured. Please set up AI in MCP Manager.",
    AIErrorCode.UNAUTHORIZED: "AI proxy authentication failed. The token may be invalid or expired. "
                              "Try restarting the server.",
    AIErrorCode.RATE_LIMITED: "Too many AI requests. Please wait a moment and try again.",
    AIErrorCode.TIMEOUT: "AI request timed out. The model may be overloaded, please try again.",
    AIErrorCode.NETWORK_ERROR: "Network error connecting to AI proxy. "
                               "Check your connection and MCP Manager status.",
}

SUMMARY_STYLES = {
    "brief": "Provide a very concise summary in 1-2 sentences.",
    "detailed": "Provide a comprehensive summary in a well-structured paragraph.",
    "bullet-points": "Provide a summary as a bulleted list of key points (3-5 bullets).",
}

SENTIMENT_SYSTEM_PROMPT = """You are a sentiment analysis expert. Analyze the emotional tone and sentiment of the provided text.

Respond in this exact format:
Sentiment: [Positive/Negative/Neutral/Mixed]
Confidence: [High/Medium/Low]
Emotions: [list primary emotions detected]
Analysis: [1-2 sentence explanation]"""


def ai_error_response(error: AIClientError, operation: str) -> ToolResponse:
    """Fixed user-facing message for an AI client failure."""
    if error.code == AIErrorCode.API_ERROR:
        message = f"AI provider error: {error.message}"
    else:
        message = ERROR_MESSAGES.get(error.code, f"AI error: {error.message}")
    return ToolResponse.text(f"❌ Failed to {operation}\n\n{message}", is_error=True)


def _mark(present: bool) -> str:
    return "✓ Set" if present else "✗ Not set"


class AIDomain(BaseDomain):
    """
    AI Domain.

    One AI client is kept per (proxy URL, token) pair so its cached
    health check carries over between requests.
    """

    name = "ai"

    def __init__(
        self,
        settings: Optional[ServerSettings] = None,
        client_factory: Optional[AIClientFactory] = None
    ) -> None:
        self.settings = settings or ServerSettings()
        self._client_factory = client_factory or self._default_client
        self._clients: dict[tuple[Optional[str], Optional[str]], AIClient] = {}

    def _client_for(self, secrets: Secrets) -> AIClient:
        key = (secrets.get(AI_PROXY_URL), secrets.get(AI_PROXY_TOKEN))
        client = self._clients.get(key)
        if client is None:
            client = self._clients[key] = self._client_factory(secrets)
        return client

    def _default_client(self, secrets: Secrets) -> AIClient:
        return AIClient.from_secrets(
            secrets,
            timeout=self.settings.ai_timeout_seconds,
            model=self.settings.ai_model
        )

    def descriptors(self) -> list[Descriptor]:
        return [
            self._tool(
                "ai_summarize",
                "Summarize the provided text using AI. Returns a concise summary of the input "
                "text. Requires AI proxy to be configured in MCP Manager.",
                self.summarize,
                input_schema={
                    "type": "object",
                    "properties": {
                        "text": {
                            "type": "string",
                            "minLength": 10,
                            "description": "Text to summarize"
                        },
                        "style": {
                            "type": "string",
                            "enum": list(SUMMARY_STYLES),
                            "default": "brief",
                            "description": "Summary style: brief (1-2 sentences), "
                                           "detailed (paragraph), or bullet-points"
                        }
                    },
                    "required": ["text"]
                },
            ),
            self._tool(
                "ai_translate",
                "Translate text to a specified language using AI. Supports any language pair.",
                self.translate,
                input_schema={
                    "type": "object",
                    "properties": {
                        "text": {
                            "type": "string",
                            "minLength": 1,
                            "description": "Text to translate"
                        },
                        "targetLanguage": {
                            "type": "string",
                            "minLength": 2,
                            "description": 'Target language (e.g., "Spanish", "Japanese")'
                        },
                        "preserveTone": {
                            "type": "boolean",
                            "default": True,
                            "description": "Preserve the original tone and style of the text"
                        }
                    },
                    "required": ["text", "targetLanguage"]
                },
            ),
            self._tool(
                "ai_analyze_sentiment",
                "Analyze the sentiment and emotional tone of text using AI. "
                "Returns sentiment score and analysis.",
                self.analyze_sentiment,
                input_schema={
                    "type": "object",
                    "properties": {
                        "text": {
                            "type": "string",
                            "minLength": 5,
                            "description": "Text to analyze"
                        }
                    },
                    "required": ["text"]
                },
            ),
            self._tool(
                "ai_chat",
                "Send a message to AI and get a response. General purpose AI chat for any "
                "question or task.",
                self.chat,
                input_schema={
                    "type": "object",
                    "properties": {
                        "message": {
                            "type": "string",
                            "minLength": 1,
                            "description": "Your message or question to the AI"
                        },
                        "systemPrompt": {
                            "type": "string",
                            "description": "Optional system prompt to customize AI behavior"
                        },
                        "temperature": {
                            "type": "number",
                            "minimum": 0,
                            "maximum": 2,
                            "default": 0.7,
                            "description": "Temperature for response creativity "
                                           "(0 = deterministic, 2 = very creative)"
                        }
                    },
                    "required": ["message"]
                },
            ),
            self._tool(
                "ai_status",
                "Check AI proxy status and list available models. "
                "Useful for debugging AI configuration.",
                self.status,
            ),
        ]

    async def _unavailable(
        self, ai: AIClient, feature: Optional[str]
    ) -> Optional[ToolResponse]:
        """Business failure if the proxy cannot be used, else None."""
        if not ai.is_configured():
            if feature is None:
                return ToolResponse.text(NOT_CONFIGURED_DETAILED, is_error=True)
            return ToolResponse.text(
                f"⚠️ AI is not configured. Please configure AI proxy in MCP Manager "
                f"to use {feature}.",
                is_error=True
            )

        if not await ai.is_available():
            return ToolResponse.text(
                NOT_AVAILABLE_DETAILED if feature is None else NOT_AVAILABLE, is_error=True
            )
        return None

    async def summarize(self, params: dict[str, Any], context: RequestContext) -> ToolResponse:
        ai = self._client_for(context.secrets)
        failure = await self._unavailable(ai, None)
        if failure:
            return failure

        style = params["style"]
        system_prompt = (
            f"You are a helpful assistant that creates {style} summaries. "
            f"{SUMMARY_STYLES[style]} Be accurate and capture the main ideas."
        )

        try:
            summary = await ai.complete_with_system(
                system_prompt, f"Please summarize the following text:\n\n{params['text']}"
            )
        except AIClientError as e:
            return ai_error_response(e, "summarize text")

        return ToolResponse.text(f"📝 Summary ({style}):\n\n{summary}")

    async def translate(self, params: dict[str, Any], context: RequestContext) -> ToolResponse:
        ai = self._client_for(context.secrets)
        failure = await self._unavailable(ai, "translation features")
        if failure:
            return failure

        target = params["targetLanguage"]
        tone = (
            "Preserve the original tone, style, and register of the text."
            if params["preserveTone"]
            else "Use a neutral tone."
        )
        system_prompt = (
            f"You are a professional translator. Translate text accurately to {target}. "
            f"{tone} Only output the translated text, no explanations."
        )

        try:
            translation = await ai.complete_with_system(system_prompt, params["text"])
        except AIClientError as e:
            return ai_error_response(e, "translate text")

        return ToolResponse.text(f"🌐 Translation ({target}):\n\n{translation}")

    async def analyze_sentiment(
        self, params: dict[str, Any], context: RequestContext
    ) -> ToolResponse:
        ai = self._client_for(context.secrets)
        failure = await self._unavailable(ai, "sentiment analysis")
        if failure:
            return failure

        try:
            analysis = await ai.complete_with_system(
                SENTIMENT_SYSTEM_PROMPT,
                f"Analyze the sentiment of this text:\n\n{params['text']}"
            )
        except AIClientError as e:
            return ai_error_response(e, "analyze sentiment")

        return ToolResponse.text(f"🎭 Sentiment Analysis:\n\n{analysis}")

    async def chat(self, params: dict[str, Any], context: RequestContext) -> ToolResponse:
        ai = self._client_for(context.secrets)
        failure = await self._unavailable(ai, "chat features")
        if failure:
            return failure

        options = CompletionOptions(temperature=params["temperature"])
        system_prompt = params.get("systemPrompt")

        try:
            if system_prompt:
                response = await ai.complete_with_system(system_prompt, params["message"], options)
            else:
                response = await ai.complete(params["message"], options)
        except AIClientError as e:
            return ai_error_response(e, "chat")

        return ToolResponse.text(f"🤖 AI Response:\n\n{response}")

    async def status(self, params: dict[str, Any], context: RequestContext) -> ToolResponse:
        ai = self._client_for(context.secrets)
        has_url = AI_PROXY_URL in context.secrets
        has_token = AI_PROXY_TOKEN in context.secrets

        if not ai.is_configured():
            return ToolResponse.text(
                "📊 AI Status: Not Configured\n\n"
                "The AI proxy is not configured. Environment variables missing:\n"
                f"- {AI_PROXY_URL}: {_mark(has_url)}\n"
                f"- {AI_PROXY_TOKEN}: {_mark(has_token)}\n\n"
                "To enable AI features:\n"
                "1. Open MCP Manager\n"
                "2. Go to Settings → AI Provider\n"
                "3. Configure your preferred AI provider\n"
                "4. Restart this server"
            )

        configuration = (
            "Configuration:\n"
            f"- {AI_PROXY_URL}: ✓ Set\n"
            f"- {AI_PROXY_TOKEN}: ✓ Set"
        )

        if not await ai.is_available(force_recheck=True):
            return ToolResponse.text(
                "📊 AI Status: Configured but Unavailable\n\n"
                f"{configuration}\n\n"
                "However, the AI proxy is not responding.\n"
                "Please check MCP Manager is running and AI provider is properly configured."
            )

        header = f"📊 AI Status: Available ✓\n\n{configuration}\n- Proxy Health: ✓ Responding"

        try:
            models = await ai.get_models()
        except AIClientError as e:
            return ToolResponse.text(
                f"{header}\n\n"
                f"Could not fetch model list: {e.message}\n\n"
                "AI is available for use despite model list error."
            )

        model_lines = "\n".join(
            f"  - {m.id}" + (f" ({m.owned_by})" if m.owned_by else "")
            for m in models.data
        ) or "  (no models available)"

        return ToolResponse.text(
            f"{header}\n\n"
            f"Available Models:\n{model_lines}\n\n"
            "You can now use AI tools like ai_summarize, ai_translate, "
            "ai_analyze_sentiment, and ai_chat."
        )


def register_ai_domain(
    registry,
    settings: Optional[ServerSettings] = None,
    client_factory: Optional[AIClientFactory] = None
) -> AIDomain:
    """Register the AI domain."""
    domain = AIDomain(settings, client_factory)
    domain.register(registry)
    return domain

"""Greeting Domain - personalized greetings from the session."""

from typing import Any, Optional

from shared.logging import get_logger
from shared.models import (
    Descriptor,
    PromptResponse,
    RequestContext,
    Session,
    ToolResponse,
)
from domains.base import BaseDomain

logger = get_logger(__name__)

DEFAULT_GREETING = "Hello"


def user_name(session: Optional[Session]) -> str:
    """Full name, else the email's local part, else ``User``."""
    if session is None:
        return "User"
    return session.display_name or "User"


def greeting_for(context: RequestContext) -> str:
    return context.config.get("greeting") or DEFAULT_GREETING


class GreetingDomain(BaseDomain):
    """Greets the current user; works with or without a session."""

    name = "greeting"

    def descriptors(self) -> list[Descriptor]:
        return [
            self._tool(
                "greet",
                "Greet the current user using their session information (email, fullName)",
                self.greet,
                input_schema={
                    "type": "object",
                    "properties": {
                        "formal": {
                            "type": "boolean",
                            "default": False,
                            "description": "Use formal greeting style"
                        }
                    },
                    "required": []
                },
            ),
            self._prompt(
                "greet_current_user",
                "Template for greeting the current logged-in user",
                self.greet_current_user,
            ),
        ]

    async def greet(self, params: dict[str, Any], context: RequestContext) -> ToolResponse:
        greeting = greeting_for(context)
        name = user_name(context.session)

        if params.get("formal"):
            message = f"{greeting}, {name}. How may I assist you today?"
        else:
            message = f"{greeting}, {name}!"

        if context.session:
            message += f"\n\nLogged in as: {context.session.email}"

        return ToolResponse.text(message)

    async def greet_current_user(
        self, params: dict[str, Any], context: RequestContext
    ) -> PromptResponse:
        return PromptResponse.user_message(
            "Please greet the current user using the greet tool. "
            f"The user's name is {user_name(context.session)}. "
            f"Use {greeting_for(context)} as the greeting."
        )


def register_greeting_domain(registry) -> GreetingDomain:
    """Register the greeting domain."""
    domain = GreetingDomain()
    domain.register(registry)
    return domain

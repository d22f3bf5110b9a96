"""Base class for domains.

A domain groups related tools, resources and prompts. Domains:
- Build descriptors with explicit handlers
- Receive everything per request through the RequestContext
- Keep no per-request state; upstream clients may be reused
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from shared.logging import get_logger
from shared.models import Descriptor, DescriptorKind, Handler
from shared.schema import EMPTY_OBJECT_SCHEMA

logger = get_logger(__name__)


class BaseDomain(ABC):
    """
    Base class for domains.

    Subclasses implement ``descriptors`` using the ``_tool``,
    ``_resource`` and ``_prompt`` helpers.
    """

    name: str = "base"

    @abstractmethod
    def descriptors(self) -> list[Descriptor]:
        """Return every descriptor of this domain."""

    def register(self, registry) -> None:
        """Register this domain's descriptors."""
        descriptors = self.descriptors()
        registry.register_many(descriptors)
        logger.info("Domain registered", domain=self.name, descriptor_count=len(descriptors))

    def _tool(
        self,
        name: str,
        description: str,
        handler: Handler,
        input_schema: Optional[dict[str, Any]] = None,
        required_roles: Optional[list[str]] = None
    ) -> Descriptor:
        return Descriptor(
            kind=DescriptorKind.TOOL,
            name=name,
            description=description,
            input_schema=input_schema or dict(EMPTY_OBJECT_SCHEMA),
            handler=handler,
            required_roles=required_roles or [],
        )

    def _resource(
        self,
        name: str,
        uri: str,
        description: str,
        handler: Handler,
        mime_type: str = "text/plain"
    ) -> Descriptor:
        return Descriptor(
            kind=DescriptorKind.RESOURCE,
            name=name,
            uri=uri,
            description=description,
            handler=handler,
            mime_type=mime_type,
        )

    def _prompt(
        self,
        name: str,
        description: str,
        handler: Handler,
        arguments: Optional[dict[str, Any]] = None
    ) -> Descriptor:
        return Descriptor(
            kind=DescriptorKind.PROMPT,
            name=name,
            description=description,
            input_schema=arguments or dict(EMPTY_OBJECT_SCHEMA),
            handler=handler,
        )

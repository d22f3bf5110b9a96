"""Descriptor Registry for the MCP News Server.

Holds every tool, resource and prompt. Domains register at startup,
then the registry is frozen and only read.
"""

from typing import Any, Optional

from shared.logging import get_logger
from shared.models import Descriptor, DescriptorKind

logger = get_logger(__name__)


class Registry:
    """
    Central registry of descriptors, keyed by (kind, name).

    Responsibilities:
    - Register descriptors from domains
    - Lookup by name, or by URI for resources
    - Listing for discovery and metadata
    """

    def __init__(self) -> None:
        self._descriptors: dict[tuple[DescriptorKind, str], Descriptor] = {}
        self._resource_uris: dict[str, Descriptor] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, descriptor: Descriptor) -> None:
        """
        Register a descriptor.

        Raises:
            RuntimeError: If the registry is frozen
            ValueError: If the name (or resource URI) is already registered
        """
        if self._frozen:
            raise RuntimeError("Registry is frozen; register descriptors at startup")

        if descriptor.key in self._descriptors:
            raise ValueError(
                f"{descriptor.kind.value.capitalize()} '{descriptor.name}' is already registered"
            )

        if descriptor.kind == DescriptorKind.RESOURCE:
            if not descriptor.uri:
                raise ValueError(f"Resource '{descriptor.name}' needs a uri")
            if descriptor.uri in self._resource_uris:
                raise ValueError(f"Resource uri '{descriptor.uri}' is already registered")
            self._resource_uris[descriptor.uri] = descriptor

        self._descriptors[descriptor.key] = descriptor

        logger.info(
            "Descriptor registered",
            kind=descriptor.kind.value,
            name=descriptor.name,
        )

    def register_many(self, descriptors: list[Descriptor]) -> None:
        """Register multiple descriptors at once."""
        for descriptor in descriptors:
            self.register(descriptor)

    def freeze(self) -> "Registry":
        """Stop accepting registrations."""
        self._frozen = True
        logger.info("Registry frozen", counts=self.counts())
        return self

    def get(self, kind: DescriptorKind, name: str) -> Optional[Descriptor]:
        """
        Get a descriptor by kind and name.

        Resources are also found by URI.
        """
        kind = DescriptorKind(kind)
        descriptor = self._descriptors.get((kind, name))
        if descriptor is None and kind == DescriptorKind.RESOURCE:
            descriptor = self.get_resource_by_uri(name)
        return descriptor

    def get_resource_by_uri(self, uri: str) -> Optional[Descriptor]:
        return self._resource_uris.get(uri)

    def list_descriptors(self, kind: Optional[DescriptorKind] = None) -> list[Descriptor]:
        """List descriptors in registration order, optionally of one kind."""
        descriptors = list(self._descriptors.values())
        if kind is not None:
            descriptors = [d for d in descriptors if d.kind == DescriptorKind(kind)]
        return descriptors

    def describe(self, kind: DescriptorKind) -> list[dict[str, Any]]:
        """Public listing entries for one kind."""
        return [d.listing() for d in self.list_descriptors(kind)]

    def counts(self) -> dict[str, int]:
        """Number of descriptors per kind."""
        counts = {kind.value: 0 for kind in DescriptorKind}
        for kind, _ in self._descriptors:
            counts[kind.value] += 1
        return counts

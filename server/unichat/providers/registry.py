from __future__ import annotations
import functools
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from unichat.core.errors import UnknownProviderError
from unichat.providers.base import ChatProvider
from unichat.providers.unified import UnifiedOpenAIProvider
from unichat.providers.vendors import VENDORS, VendorProfile
from unichat.schemas.provider import ProviderConfig

ProviderFactory = Callable[[ProviderConfig], ChatProvider]


@dataclass(frozen=True)
class ProviderRegistration:
    name: str
    display_name: str
    factory: ProviderFactory


def vendor_registration(profile: VendorProfile, **adapter_options) -> ProviderRegistration:
    return ProviderRegistration(
        name=profile.name,
        display_name=profile.display_name,
        factory=functools.partial(UnifiedOpenAIProvider, profile, **adapter_options),
    )


class ProviderRegistry:
    """Catalog of provider registrations plus the live adapter created for each.

    Creating an adapter replaces whatever instance was cached under the same
    name; the registry holds the current adapter per provider, not a pool.
    """

    def __init__(self) -> None:
        self._registrations: Dict[str, ProviderRegistration] = {}
        self._providers: Dict[str, ChatProvider] = {}

    def register(self, registration: ProviderRegistration) -> None:
        self._registrations[registration.name] = registration

    def list_available(self) -> List[ProviderRegistration]:
        return list(self._registrations.values())

    def get_registration(self, name: str) -> Optional[ProviderRegistration]:
        return self._registrations.get(name)

    def create(self, name: str, config: ProviderConfig) -> ChatProvider:
        registration = self._registrations.get(name)
        if registration is None:
            raise UnknownProviderError(name)
        provider = registration.factory(config)
        self._providers[name] = provider
        return provider

    def get(self, name: str) -> Optional[ChatProvider]:
        return self._providers.get(name)

    def has(self, name: str) -> bool:
        return name in self._providers

    def remove(self, name: str) -> None:
        self._providers.pop(name, None)


def default_registry(**adapter_options) -> ProviderRegistry:
    """Registry with every built-in vendor. `adapter_options` go to each adapter (e.g. transport)."""
    registry = ProviderRegistry()
    for profile in VENDORS.values():
        registry.register(vendor_registration(profile, **adapter_options))
    return registry

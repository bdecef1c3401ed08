"""Model discovery across registered providers."""
from __future__ import annotations
import asyncio
import logging
from typing import List, Mapping

from unichat.core.errors import UnknownProviderError
from unichat.providers.registry import ProviderRegistration, ProviderRegistry
from unichat.schemas.provider import ModelDescriptor, ProviderConfig

logger = logging.getLogger(__name__)


async def discover_provider_models(
    registry: ProviderRegistry, provider_name: str, config: ProviderConfig
) -> List[ModelDescriptor]:
    """Fetch models for a single provider. Errors propagate."""
    if registry.get_registration(provider_name) is None:
        raise UnknownProviderError(provider_name)
    provider = registry.create(provider_name, config)
    return await provider.list_models()


async def discover_all_provider_models(
    registry: ProviderRegistry, provider_configs: Mapping[str, ProviderConfig]
) -> List[ModelDescriptor]:
    """Fetch models from every registered provider that has a config with an API key.

    Providers are queried concurrently. A provider that fails is logged and
    skipped; result order across providers is unspecified.
    """

    async def _discover(registration: ProviderRegistration) -> List[ModelDescriptor]:
        try:
            provider = registry.create(registration.name, provider_configs[registration.name])
            models = await provider.list_models()
        except Exception as e:
            logger.warning("[ModelDiscovery] Failed to fetch models for provider %s: %s", registration.name, e)
            return []
        # The registry key is authoritative over whatever the vendor reported
        return [m.model_copy(update={"provider": registration.name}) for m in models]

    pending = []
    for registration in registry.list_available():
        config = provider_configs.get(registration.name)
        if not config or not config.api_key:
            continue
        pending.append(_discover(registration))

    results = await asyncio.gather(*pending)
    return [model for models in results for model in models]

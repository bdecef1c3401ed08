"""Selects the active provider from environment settings."""
from __future__ import annotations
import logging
from typing import Dict

from unichat.config import Settings
from unichat.providers.base import ChatProvider
from unichat.providers.registry import ProviderRegistry
from unichat.schemas.provider import ProviderConfig
from unichat.services.chat_service import ChatService

logger = logging.getLogger(__name__)


def provider_configs_from_settings(settings: Settings, registry: ProviderRegistry) -> Dict[str, ProviderConfig]:
    configs: Dict[str, ProviderConfig] = {}
    for registration in registry.list_available():
        api_key = settings.api_key_for(registration.name)
        base_url = settings.base_url_for(registration.name)
        if api_key or base_url:
            configs[registration.name] = ProviderConfig(
                name=registration.name, api_key=api_key or "", base_url=base_url
            )
    return configs


def activate_provider(registry: ProviderRegistry, chat_service: ChatService, config: ProviderConfig) -> ChatProvider:
    provider = registry.create(config.name, config)
    chat_service.set_provider(provider)
    logger.info("Active provider set to %s (%s)", provider.name, provider.base_url)
    return provider


def initialize_from_environment(
    settings: Settings, registry: ProviderRegistry, chat_service: ChatService
) -> bool:
    """Activate the configured default provider, else OpenAI when a key exists.

    Returns False when nothing could be configured.
    """
    configs = provider_configs_from_settings(settings, registry)
    config = configs.get(settings.default_provider)
    if config is not None and registry.get_registration(config.name) is not None:
        activate_provider(registry, chat_service, config)
        return True

    openai = configs.get("openai")
    if openai is not None and openai.api_key:
        activate_provider(registry, chat_service, openai)
        return True

    logger.warning("No AI provider configuration found")
    return False

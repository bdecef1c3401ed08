from fastapi import APIRouter, Depends
from typing import Any, Dict, List

from unichat.api.deps import get_app_settings, get_chat_service, get_registry
from unichat.config import Settings
from unichat.providers.registry import ProviderRegistry
from unichat.schemas.provider import ProviderConfig, ProviderInfo
from unichat.services.chat_service import ChatService
from unichat.services.discovery import discover_all_provider_models, discover_provider_models
from unichat.services.initializer import activate_provider, provider_configs_from_settings

router = APIRouter()


@router.get("/providers")
async def list_providers(
    registry: ProviderRegistry = Depends(get_registry),
    chat_service: ChatService = Depends(get_chat_service),
    settings: Settings = Depends(get_app_settings),
) -> List[Dict[str, Any]]:
    """List registered providers, flagging the configured and active ones."""
    configs = provider_configs_from_settings(settings, registry)
    active = chat_service.provider.name if chat_service.provider else None
    return [
        ProviderInfo(
            name=reg.name,
            display_name=reg.display_name,
            configured=reg.name in configs,
            active=reg.name == active,
        ).model_dump(by_alias=True)
        for reg in registry.list_available()
    ]


@router.put("/providers/active")
async def set_active_provider(
    config: ProviderConfig,
    registry: ProviderRegistry = Depends(get_registry),
    chat_service: ChatService = Depends(get_chat_service),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Switch the chat service to another provider.

    Missing credentials are taken from the environment configuration.
    """
    if not config.api_key and not config.base_url:
        config = provider_configs_from_settings(settings, registry).get(config.name, config)
    provider = activate_provider(registry, chat_service, config)
    return {"name": provider.name, "displayName": provider.display_name, "baseUrl": provider.base_url}


@router.get("/providers/active/models")
async def get_active_models(chat_service: ChatService = Depends(get_chat_service)) -> List[Dict[str, Any]]:
    models = await chat_service.get_models()
    return [m.model_dump(by_alias=True) for m in models]


@router.post("/providers/active/validate")
async def validate_active_provider(chat_service: ChatService = Depends(get_chat_service)) -> Dict[str, bool]:
    return {"valid": await chat_service.validate_credential()}


@router.get("/providers/{provider_name}/models")
async def get_provider_models(
    provider_name: str,
    registry: ProviderRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> List[Dict[str, Any]]:
    config = provider_configs_from_settings(settings, registry).get(provider_name) or ProviderConfig(name=provider_name)
    models = await discover_provider_models(registry, provider_name, config)
    return [m.model_dump(by_alias=True) for m in models]


@router.get("/models")
async def get_models(
    registry: ProviderRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Get available models grouped by provider from every configured provider."""
    configs = provider_configs_from_settings(settings, registry)
    models = await discover_all_provider_models(registry, configs)
    providers: Dict[str, Any] = {}
    for reg in registry.list_available():
        grouped = [m.model_dump(by_alias=True) for m in models if m.provider == reg.name]
        if grouped:
            providers[reg.name] = {"name": reg.display_name, "models": grouped}
    return {"providers": providers}

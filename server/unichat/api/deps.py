"""FastAPI dependencies resolving the per-app singletons kept on `app.state`."""
from __future__ import annotations
from fastapi import Request

from unichat.config import Settings
from unichat.core.ratelimit import RateLimiter
from unichat.providers.registry import ProviderRegistry
from unichat.services.chat_service import ChatService
from unichat.storage.base import ChatStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_store(request: Request) -> ChatStore:
    return request.app.state.store


def rate_limited(request: Request) -> None:
    limiter: RateLimiter = request.app.state.rate_limiter
    limiter.enforce(request)

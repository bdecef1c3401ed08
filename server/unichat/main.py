import logging
from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .core.errors import ChatError
from .core.logging import setup_logging
from .core.ratelimit import RateLimiter
from .providers.registry import ProviderRegistry, default_registry
from .services.chat_service import ChatService
from .services.initializer import initialize_from_environment
from .storage.base import ChatStore
from .storage.factory import create_store

# API routers
from .api.v1.models import router as models_router
from .api.v1.chat import router as chat_router
from .api.v1.conversations import router as conversations_router
from .api.v1.chat_settings import router as chat_settings_router
from .api.v1.file_data import router as file_data_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def create_app(
    settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    store: Optional[ChatStore] = None,
    chat_service: Optional[ChatService] = None,
) -> FastAPI:
    settings = settings or get_settings()
    # Setup logging early
    setup_logging(settings.log_level)
    app = FastAPI(title="UniChat Server", version=VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(o).rstrip("/") for o in settings.allowed_origins],
        allow_origin_regex=r"https?://(localhost|127\.0\.0\.1):3000",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.registry = registry or default_registry(
        timeout=httpx.Timeout(settings.request_timeout, connect=10.0),
        max_attempts=settings.request_max_attempts,
    )
    app.state.chat_service = chat_service or ChatService(stream_delay=settings.stream_delay_ms / 1000)
    app.state.store = store or create_store(settings)
    app.state.rate_limiter = RateLimiter(limit=settings.rate_limit_per_minute, window_seconds=60)

    # Mount API v1
    api_v1 = APIRouter()
    api_v1.include_router(models_router, prefix="/v1")
    api_v1.include_router(chat_router, prefix="/v1")
    api_v1.include_router(conversations_router, prefix="/v1")
    api_v1.include_router(chat_settings_router, prefix="/v1")
    api_v1.include_router(file_data_router, prefix="/v1")
    app.include_router(api_v1, prefix="/api")

    @app.exception_handler(ChatError)
    async def _chat_error(request: Request, exc: ChatError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.on_event("startup")
    async def _startup() -> None:
        # Ensure SQLite tables exist
        await app.state.store.initialize()
        if app.state.chat_service.provider is None:
            initialize_from_environment(settings, app.state.registry, app.state.chat_service)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        app.state.chat_service.abort_request()
        await app.state.store.close()

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.get("/")
    def root():
        return {"service": "unichat", "version": VERSION}

    return app


app = create_app()

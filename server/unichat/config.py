from functools import lru_cache
from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional


class Settings(BaseSettings):
    server_port: int = 8000
    log_level: str = "INFO"
    # Allow both localhost and 127.0.0.1 for local development
    allowed_origins: List[AnyHttpUrl] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]  # type: ignore

    # Provider credentials and endpoint overrides
    default_provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    xai_api_key: Optional[str] = None
    xai_base_url: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    anthropic_base_url: Optional[str] = None
    gemini_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    gemini_base_url: Optional[str] = None
    deepseek_api_key: Optional[str] = None
    deepseek_base_url: Optional[str] = None
    together_api_key: Optional[str] = None
    together_base_url: Optional[str] = None
    ollama_api_key: Optional[str] = None
    ollama_base_url: Optional[str] = None

    # Provider HTTP behavior
    request_timeout: float = 120.0
    request_max_attempts: int = 3
    stream_delay_ms: int = 10

    # Persistence: "sql" for the SQLite-backed store, "memory" for an in-process store
    storage_mode: Literal["sql", "memory"] = "sql"
    database_url: str = "sqlite+aiosqlite:///./unichat.db"

    rate_limit_per_minute: int = 30

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=("../.env", ".env"),
        extra="ignore",  # ignore env vars not defined as fields
    )

    def api_key_for(self, provider: str) -> Optional[str]:
        key = getattr(self, f"{provider}_api_key", None)
        if not key and provider == "gemini":
            key = self.google_api_key
        return key

    def base_url_for(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_base_url", None)


@lru_cache()
def get_settings() -> Settings:
    return Settings()

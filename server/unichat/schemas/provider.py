from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ModelDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    provider: str
    context_window: int = Field(default=0, ge=0)
    knowledge_cutoff: str = ""
    image_support: bool = False
    preferred: bool = False
    deprecated: bool = False


class ProviderConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    api_key: str = ""
    base_url: Optional[str] = None


class SpeechSettings(BaseModel):
    model: str = "tts-1"
    voice: str = "alloy"
    speed: float = 1.0


class ProviderInfo(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    display_name: str
    configured: bool = False
    active: bool = False

from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from unichat.schemas.chat import ChatMessage


class Conversation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    gid: int = 0
    timestamp: int = 0
    title: str = Field(..., min_length=1, max_length=200)
    model: Optional[str] = None
    system_prompt: str = ""
    messages: List[ChatMessage] = Field(default_factory=list)
    marker: bool = False


class ConversationPatch(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    gid: Optional[int] = None
    timestamp: Optional[int] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    model: Optional[str] = None
    system_prompt: Optional[str] = None
    messages: Optional[List[ChatMessage]] = None
    marker: Optional[bool] = None


class FileDataPatch(BaseModel):
    data: Optional[str] = None
    type: Optional[str] = None
    source: Optional[str] = None
    filename: Optional[str] = None


def patch_changes(patch: BaseModel) -> Dict[str, Any]:
    """Fields present in the body with a non-null value. Nulls leave the stored value alone."""
    return {name: getattr(patch, name) for name in patch.model_fields_set if getattr(patch, name) is not None}


class FileDataStats(BaseModel):
    total_files: int = 0
    total_size: int = 0
    avg_size: float = 0.0


def estimate_size(data: Optional[str]) -> int:
    """Approximate decoded size of a base64 payload."""
    return (len(data) * 3) // 4 if data else 0

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatSettingsRow(SQLModel, table=True):
    __tablename__ = "chat_settings"

    id: Optional[int] = Field(default=None, primary_key=True)
    author: str
    icon: Optional[str] = None  # JSON
    name: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    model: Optional[str] = None
    seed: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = True
    show_in_sidebar: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ConversationRow(SQLModel, table=True):
    __tablename__ = "conversations"

    id: int = Field(primary_key=True)
    gid: int = Field(default=0, index=True)
    timestamp: int = Field(default=0, index=True)
    title: str
    model: Optional[str] = None
    system_prompt: str = ""
    messages: str = "[]"  # JSON list of ChatMessage
    marker: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FileDataRow(SQLModel, table=True):
    __tablename__ = "file_data"

    id: Optional[int] = Field(default=None, primary_key=True)
    data: str = ""  # base64 or data URL
    type: str  # MIME type
    source: str  # 'filename' or 'pasted'
    filename: Optional[str] = None
    size: int = 0
    created_at: datetime = Field(default_factory=utcnow)

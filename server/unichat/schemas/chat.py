from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["system", "user", "assistant"]


# Application-level messages, as stored with a conversation

class FileData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    data: str = ""
    type: str
    source: str = "filename"
    filename: Optional[str] = None
    size: int = 0


class FileDataRef(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[int] = None
    file_data: Optional[FileData] = None


class ChatMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    role: Role
    content: str = ""
    file_data_ref: List[FileDataRef] = Field(default_factory=list)


class ChatSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = None
    author: str = "user"
    icon: Optional[Dict[str, Any]] = None
    name: str = "Default"
    description: Optional[str] = None
    instructions: Optional[str] = None
    model: Optional[str] = None
    seed: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    max_tokens: Optional[int] = Field(default=None, ge=1)
    stream: bool = True
    show_in_sidebar: bool = Field(default=False, alias="showInSidebar")


# Normalized provider request / response

class ImageUrl(BaseModel):
    url: str


class MessagePart(BaseModel):
    type: str
    text: Optional[str] = None
    image_url: Optional[ImageUrl] = None


class CompletionMessage(BaseModel):
    role: Role
    content: Union[str, List[MessagePart]]


class ChatCompletionRequest(BaseModel):
    messages: List[CompletionMessage]
    model: str
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    max_tokens: Optional[int] = None
    stop: Optional[Union[str, List[str]]] = None
    seed: Optional[int] = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str = "assistant"
    content: Optional[str] = ""


class CompletionChoice(BaseModel):
    message: ResponseMessage
    finish_reason: Optional[str] = None
    index: int = 0


class Completion(BaseModel):
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    usage: Usage = Field(default_factory=Usage)
    choices: List[CompletionChoice] = Field(default_factory=list)


# HTTP request bodies

class ChatRequest(BaseModel):
    messages: List[ChatMessage]
    settings: ChatSettings


class SpeechRequest(BaseModel):
    text: str
    model: str = "tts-1"
    voice: str = "alloy"
    speed: float = 1.0

from __future__ import annotations
from typing import Protocol, AsyncIterator, List

from unichat.schemas.chat import ChatCompletionRequest, Completion
from unichat.schemas.provider import ModelDescriptor, SpeechSettings


class ChatProvider(Protocol):
    name: str
    display_name: str
    base_url: str

    async def list_models(self) -> List[ModelDescriptor]:
        """Never raises; falls back to a static list."""
        ...

    async def fetch_models(self) -> List[ModelDescriptor]:
        ...

    async def create_completion(self, request: ChatCompletionRequest) -> Completion:
        ...

    async def create_completion_stream(self, request: ChatCompletionRequest) -> AsyncIterator[bytes]:
        """Return raw event-stream bytes ('data: {...}\\n\\n' framing)."""
        ...

    async def text_to_speech(self, text: str, settings: SpeechSettings) -> str:
        ...

    async def list_speech_models(self) -> List[ModelDescriptor]:
        ...

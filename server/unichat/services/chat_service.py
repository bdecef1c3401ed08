from __future__ import annotations
import asyncio
import codecs
import json
import logging
import time
from typing import AsyncIterator, Callable, List, Optional, Sequence

from unichat.core.cancellation import CancellationToken
from unichat.core.data_urls import to_data_url
from unichat.core.errors import (
    ConfigurationError,
    ModelNotFoundError,
    RequestInProgressError,
)
from unichat.providers.base import ChatProvider
from unichat.schemas.chat import (
    ChatCompletionRequest,
    ChatMessage,
    ChatSettings,
    Completion,
    CompletionChoice,
    CompletionMessage,
    ImageUrl,
    MessagePart,
    ResponseMessage,
    Usage,
)
from unichat.schemas.provider import ModelDescriptor

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[str], None]

DATA_PREFIX = "data: "
DONE_SENTINEL = "data: [DONE]"


def _ignore_fragment(fragment: str) -> None:
    return None


async def _next_chunk(iterator: AsyncIterator[bytes]) -> Optional[bytes]:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


class StreamAccumulator:
    """Decodes an event-stream byte sequence into content fragments.

    Bytes may split UTF-8 sequences and lines arbitrarily; the incomplete
    tail is kept until the next feed or the final flush.
    """

    def __init__(self, on_fragment: FragmentCallback, token: Optional[CancellationToken] = None) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._on_fragment = on_fragment
        self._token = token
        self.message = ""
        self.chunk_count = 0

    def feed(self, data: bytes) -> None:
        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        for line in lines:
            self._process_line(line)

    def flush(self) -> None:
        self._buffer += self._decoder.decode(b"", final=True)
        lines = self._buffer.split("\n")
        self._buffer = ""
        for line in lines:
            self._process_line(line)

    def _process_line(self, line: str) -> None:
        line = line.strip()
        if not line or line == DONE_SENTINEL or not line.startswith(DATA_PREFIX):
            return
        try:
            chunk = json.loads(line[len(DATA_PREFIX):])
        except ValueError as e:
            logger.warning("Error parsing chunk %r: %s", line, e)
            return
        self.chunk_count += 1
        content = None
        choices = chunk.get("choices") if isinstance(chunk, dict) else None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            delta = choices[0].get("delta")
            if isinstance(delta, dict):
                content = delta.get("content")
        if not content or not isinstance(content, str):
            return
        if self._token is not None:
            self._token.raise_if_cancelled()
        self.message += content
        self._on_fragment(content)


class ChatService:
    """Runs chat requests against the active provider.

    One request may be in flight per instance; a second concurrent
    `send_message` fails with RequestInProgressError.
    """

    def __init__(self, provider: Optional[ChatProvider] = None, stream_delay: float = 0.0) -> None:
        self._provider = provider
        self._stream_delay = stream_delay
        self._models: Optional[List[ModelDescriptor]] = None
        self._models_lock: Optional[asyncio.Lock] = None
        self._token: Optional[CancellationToken] = None

    @property
    def provider(self) -> Optional[ChatProvider]:
        return self._provider

    @property
    def busy(self) -> bool:
        return self._token is not None

    def set_provider(self, provider: ChatProvider) -> None:
        self._provider = provider
        self._models = None

    # Models

    async def get_models(self) -> List[ModelDescriptor]:
        provider = self._provider
        if provider is None:
            raise ConfigurationError("No AI provider configured")
        if self._models_lock is None:
            self._models_lock = asyncio.Lock()
        async with self._models_lock:
            if self._models is not None and provider is self._provider:
                return self._models
            models = await provider.list_models()
            # Provider may have been swapped while we were fetching
            if provider is self._provider:
                self._models = models
            return models

    async def get_model_by_id(self, model_id: str) -> Optional[ModelDescriptor]:
        models = await self.get_models()
        return next((m for m in models if m.id == model_id), None)

    async def validate_credential(self) -> bool:
        if self._provider is None:
            return False
        try:
            await self._provider.fetch_models()
        except Exception as e:
            logger.info("Credential check failed for %s: %s", self._provider.name, e)
            return False
        return True

    # Messages

    async def map_chat_messages(self, model_id: str, messages: Sequence[ChatMessage]) -> List[CompletionMessage]:
        model = await self.get_model_by_id(model_id)
        if model is None:
            raise ModelNotFoundError(model_id)

        completion_messages: List[CompletionMessage] = []
        for message in messages:
            parts = [MessagePart(type="text", text=message.content)]
            if model.image_support:
                for ref in message.file_data_ref:
                    file_data = ref.file_data
                    if file_data is None or not file_data.data:
                        continue
                    if file_data.type.startswith("image"):
                        parts.append(MessagePart(
                            type="image_url",
                            image_url=ImageUrl(url=to_data_url(file_data.type, file_data.data)),
                        ))
                    else:
                        parts.append(MessagePart(type=file_data.type))
            completion_messages.append(CompletionMessage(role=message.role, content=parts))
        return completion_messages

    def start_message(
        self,
        messages: Sequence[ChatMessage],
        chat_settings: ChatSettings,
        on_fragment: Optional[FragmentCallback] = None,
    ) -> "asyncio.Task[Completion]":
        """Claim the request slot and start the request as a task.

        Configuration errors and a busy service raise here, before anything
        is scheduled; once this returns, `busy` is true until the task ends.
        """
        provider = self._provider
        if provider is None:
            raise ConfigurationError("No AI provider configured")
        if not chat_settings.model:
            raise ConfigurationError("No model specified in chat settings")
        if self._token is not None:
            raise RequestInProgressError("A chat request is already in progress")

        token = CancellationToken()
        self._token = token
        return asyncio.create_task(self._run(provider, token, messages, chat_settings, on_fragment))

    async def send_message(
        self,
        messages: Sequence[ChatMessage],
        chat_settings: ChatSettings,
        on_fragment: Optional[FragmentCallback] = None,
    ) -> Completion:
        return await self.start_message(messages, chat_settings, on_fragment)

    async def _run(
        self,
        provider: ChatProvider,
        token: CancellationToken,
        messages: Sequence[ChatMessage],
        chat_settings: ChatSettings,
        on_fragment: Optional[FragmentCallback],
    ) -> Completion:
        try:
            request = ChatCompletionRequest(
                messages=await token.guard(self.map_chat_messages(chat_settings.model, messages)),
                model=chat_settings.model,
                temperature=chat_settings.temperature,
                top_p=chat_settings.top_p,
                frequency_penalty=chat_settings.frequency_penalty,
                presence_penalty=chat_settings.presence_penalty,
                max_tokens=chat_settings.max_tokens,
                seed=chat_settings.seed,
            )
            if chat_settings.stream:
                return await self._send_streaming(provider, request, on_fragment or _ignore_fragment, token)
            return await token.guard(provider.create_completion(request))
        finally:
            if self._token is token:
                self._token = None

    async def _send_streaming(
        self,
        provider: ChatProvider,
        request: ChatCompletionRequest,
        on_fragment: FragmentCallback,
        token: CancellationToken,
    ) -> Completion:
        stream = await token.guard(provider.create_completion_stream(request))
        accumulator = StreamAccumulator(on_fragment, token)
        try:
            while True:
                data = await token.guard(_next_chunk(stream))
                if data is None:
                    break
                accumulator.feed(data)
                if self._stream_delay > 0:
                    # Coalesce bursts of chunks before the next read
                    await token.guard(asyncio.sleep(self._stream_delay))
            accumulator.flush()
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.debug("Stream finished model=%s chunks=%d chars=%d",
                     request.model, accumulator.chunk_count, len(accumulator.message))
        return Completion(
            id=f"chatcmpl-{int(time.time() * 1000)}",
            object="chat.completion",
            created=int(time.time()),
            model=request.model,
            usage=Usage(),
            choices=[CompletionChoice(
                message=ResponseMessage(role="assistant", content=accumulator.message),
                finish_reason="stop",
                index=0,
            )],
        )

    def abort_request(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

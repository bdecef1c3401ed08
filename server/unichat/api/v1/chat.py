from __future__ import annotations
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from unichat.api.deps import get_chat_service, get_store, rate_limited
from unichat.core.errors import ChatError, ConfigurationError
from unichat.schemas.chat import ChatRequest, Completion, SpeechRequest
from unichat.schemas.provider import SpeechSettings
from unichat.services.chat_service import ChatService
from unichat.services.files import resolve_file_refs
from unichat.storage.base import ChatStore

router = APIRouter()
logger = logging.getLogger(__name__)

DONE_EVENT = "data: {\"done\": true}\n\n"


def sse(payload: Dict[str, Any]) -> str:
    return "data: " + json.dumps(payload) + "\n\n"


@dataclass
class _StreamEnd:
    completion: Optional[Completion] = None
    error: Optional[ChatError] = None


@router.post("/chat", dependencies=[Depends(rate_limited)])
async def chat(
    request: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service),
    store: ChatStore = Depends(get_store),
):
    """Run a chat completion on the active provider.

    With `settings.stream` the response is an event stream of
    `{"content": ...}` fragments closed by `{"done": true}`.
    """
    logger.info("/chat start model=%s messages=%d stream=%s",
                request.settings.model, len(request.messages), request.settings.stream)
    messages = await resolve_file_refs(request.messages, store)

    if not request.settings.stream:
        completion = await chat_service.send_message(messages, request.settings)
        return completion.model_dump()

    queue: asyncio.Queue = asyncio.Queue()
    # Raises configuration and busy errors before the event stream starts
    pending = chat_service.start_message(messages, request.settings, queue.put_nowait)

    async def run() -> None:
        try:
            completion = await pending
            queue.put_nowait(_StreamEnd(completion=completion))
        except ChatError as e:
            logger.info("/chat stream ended with %s: %s", type(e).__name__, e.message)
            queue.put_nowait(_StreamEnd(error=e))
        except Exception as e:
            logger.exception("/chat stream error model=%s: %s", request.settings.model, e)
            queue.put_nowait(_StreamEnd(error=ChatError("Internal error while streaming")))

    task = asyncio.create_task(run())

    async def generator():
        try:
            while True:
                item = await queue.get()
                if isinstance(item, str):
                    yield sse({"content": item})
                    continue
                if item.error is not None:
                    yield sse({"error": item.error.message, "status": item.error.status_code})
                yield DONE_EVENT
                break
        finally:
            if not task.done():
                # Client went away mid-stream
                chat_service.abort_request()
                await asyncio.wait({task})

    return StreamingResponse(
        generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@router.post("/chat/abort")
async def abort_chat(chat_service: ChatService = Depends(get_chat_service)) -> Dict[str, str]:
    chat_service.abort_request()
    return {"status": "aborted"}


@router.post("/speech", dependencies=[Depends(rate_limited)])
async def text_to_speech(request: SpeechRequest, chat_service: ChatService = Depends(get_chat_service)) -> Dict[str, str]:
    provider = chat_service.provider
    if provider is None:
        raise ConfigurationError("No AI provider configured")
    url = await provider.text_to_speech(
        request.text, SpeechSettings(model=request.model, voice=request.voice, speed=request.speed)
    )
    return {"url": url}


@router.get("/speech/models")
async def speech_models(chat_service: ChatService = Depends(get_chat_service)) -> List[Dict[str, Any]]:
    provider = chat_service.provider
    if provider is None:
        raise ConfigurationError("No AI provider configured")
    return [m.model_dump(by_alias=True) for m in await provider.list_speech_models()]

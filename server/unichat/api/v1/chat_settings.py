from fastapi import APIRouter, Depends
from typing import Any, Dict, List

from unichat.api.deps import get_store
from unichat.core.errors import RecordNotFoundError
from unichat.schemas.chat import ChatSettings
from unichat.storage.base import ChatStore

router = APIRouter()


@router.get("/chat-settings")
async def list_chat_settings(store: ChatStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return [s.model_dump(by_alias=True) for s in await store.list_chat_settings()]


@router.get("/chat-settings/{settings_id}")
async def get_chat_settings(settings_id: int, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    settings = await store.get_chat_settings(settings_id)
    if settings is None:
        raise RecordNotFoundError("Chat settings not found")
    return settings.model_dump(by_alias=True)


@router.post("/chat-settings", status_code=201)
async def create_chat_settings(settings: ChatSettings, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    new_id = await store.add_chat_settings(settings)
    return {"id": new_id, "message": "Chat settings created"}


@router.put("/chat-settings/{settings_id}")
async def update_chat_settings(
    settings_id: int, settings: ChatSettings, store: ChatStore = Depends(get_store)
) -> Dict[str, Any]:
    if not await store.update_chat_settings(settings_id, settings):
        raise RecordNotFoundError("Chat settings not found")
    return {"id": settings_id, "message": "Chat settings updated"}


@router.delete("/chat-settings/{settings_id}")
async def delete_chat_settings(settings_id: int, store: ChatStore = Depends(get_store)) -> Dict[str, str]:
    if not await store.delete_chat_settings(settings_id):
        raise RecordNotFoundError("Chat settings not found")
    return {"status": "deleted", "id": str(settings_id)}

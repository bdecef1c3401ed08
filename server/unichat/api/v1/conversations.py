from fastapi import APIRouter, Depends, Query
from typing import Any, Dict, List

from unichat.api.deps import get_store
from unichat.core.errors import RecordNotFoundError
from unichat.schemas.storage import Conversation, ConversationPatch
from unichat.storage.base import DEFAULT_RECENT_LIMIT, ChatStore

router = APIRouter()


def _dump(conversations: List[Conversation]) -> List[Dict[str, Any]]:
    return [c.model_dump(by_alias=True) for c in conversations]


@router.get("/conversations/recent")
async def list_recent_conversations(
    limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=1000),
    store: ChatStore = Depends(get_store),
) -> List[Dict[str, Any]]:
    """Most recent conversations first. Messages are left out."""
    return _dump(await store.list_recent_conversations(limit))


@router.get("/conversations/search/title")
async def search_by_title(q: str = Query(..., min_length=1), store: ChatStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return _dump(await store.search_conversations_by_title(q))


@router.get("/conversations/search/messages")
async def search_by_messages(q: str = Query(..., min_length=1), store: ChatStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return _dump(await store.search_conversations_by_messages(q))


@router.get("/conversations/gid/{gid}")
async def count_by_gid(gid: int, store: ChatStore = Depends(get_store)) -> Dict[str, int]:
    return {"gid": gid, "count": await store.count_conversations(gid)}


@router.delete("/conversations/gid/{gid}")
async def delete_by_gid(gid: int, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    deleted = await store.delete_conversations_by_gid(gid)
    return {"status": "deleted", "count": deleted}


@router.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: int, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    conversation = await store.get_conversation(conversation_id)
    if conversation is None:
        raise RecordNotFoundError("Conversation not found")
    return conversation.model_dump(by_alias=True)


@router.post("/conversations", status_code=201)
async def create_conversation(conversation: Conversation, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    new_id = await store.add_conversation(conversation)
    return {"id": new_id, "message": "Conversation created"}


@router.put("/conversations/{conversation_id}")
async def update_conversation(
    conversation_id: int, conversation: Conversation, store: ChatStore = Depends(get_store)
) -> Dict[str, Any]:
    if not await store.update_conversation(conversation_id, conversation):
        raise RecordNotFoundError("Conversation not found")
    return {"id": conversation_id, "message": "Conversation updated"}


@router.patch("/conversations/{conversation_id}")
async def patch_conversation(
    conversation_id: int, patch: ConversationPatch, store: ChatStore = Depends(get_store)
) -> Dict[str, Any]:
    """Update only the fields present in the body (e.g. a rename)."""
    if not await store.patch_conversation(conversation_id, patch):
        raise RecordNotFoundError("Conversation not found")
    return {"id": conversation_id, "message": "Conversation updated"}


@router.delete("/conversations/{conversation_id}")
async def delete_conversation(conversation_id: int, store: ChatStore = Depends(get_store)) -> Dict[str, str]:
    if not await store.delete_conversation(conversation_id):
        raise RecordNotFoundError("Conversation not found")
    return {"status": "deleted", "id": str(conversation_id)}


@router.delete("/conversations")
async def delete_all_conversations(store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    deleted = await store.delete_all_conversations()
    return {"status": "deleted", "count": deleted}

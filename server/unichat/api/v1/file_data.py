from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict

from unichat.api.deps import get_store
from unichat.core.errors import RecordNotFoundError
from unichat.schemas.chat import FileData
from unichat.schemas.storage import FileDataPatch, patch_changes
from unichat.storage.base import ChatStore

router = APIRouter()


@router.get("/file-data/stats/summary")
async def file_data_stats(store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    """Count, total and average size of the stored attachments."""
    stats = await store.file_data_stats()
    return stats.model_dump()


@router.get("/file-data/{file_id}")
async def get_file_data(file_id: int, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    file_data = await store.get_file_data(file_id)
    if file_data is None:
        raise RecordNotFoundError("File data not found")
    return file_data.model_dump(by_alias=True)


@router.post("/file-data", status_code=201)
async def create_file_data(file_data: FileData, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    new_id = await store.add_file_data(file_data)
    return {"id": new_id, "message": "File data created"}


@router.put("/file-data/{file_id}")
async def update_file_data(file_id: int, file_data: FileData, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    if not await store.update_file_data(file_id, file_data):
        raise RecordNotFoundError("File data not found")
    return {"id": file_id, "message": "File data updated"}


@router.patch("/file-data/{file_id}")
async def patch_file_data(file_id: int, patch: FileDataPatch, store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    """Update any of data, type, source and filename. Other fields are ignored."""
    if not patch_changes(patch):
        raise HTTPException(status_code=400, detail="No valid fields to update")
    if not await store.patch_file_data(file_id, patch):
        raise RecordNotFoundError("File data not found")
    return {"id": file_id, "message": "File data updated"}


@router.delete("/file-data/{file_id}")
async def delete_file_data(file_id: int, store: ChatStore = Depends(get_store)) -> Dict[str, str]:
    if not await store.delete_file_data(file_id):
        raise RecordNotFoundError("File data not found")
    return {"status": "deleted", "id": str(file_id)}


@router.delete("/file-data")
async def delete_all_file_data(store: ChatStore = Depends(get_store)) -> Dict[str, Any]:
    deleted = await store.delete_all_file_data()
    return {"status": "deleted", "count": deleted}

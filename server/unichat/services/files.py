from __future__ import annotations
import logging
from typing import List, Sequence

from unichat.schemas.chat import ChatMessage
from unichat.storage.base import ChatStore

logger = logging.getLogger(__name__)


async def resolve_file_refs(messages: Sequence[ChatMessage], store: ChatStore) -> List[ChatMessage]:
    """Load attachment payloads for references that only carry an id.

    References whose file data is missing from the store are dropped.
    """
    resolved: List[ChatMessage] = []
    for message in messages:
        if not message.file_data_ref:
            resolved.append(message)
            continue
        refs = []
        for ref in message.file_data_ref:
            if ref.file_data is not None and ref.file_data.data:
                refs.append(ref)
                continue
            if ref.id is None:
                continue
            file_data = await store.get_file_data(ref.id)
            if file_data is None:
                logger.warning("File data %s referenced by a message was not found", ref.id)
                continue
            refs.append(ref.model_copy(update={"file_data": file_data}))
        resolved.append(message.model_copy(update={"file_data_ref": refs}))
    return resolved

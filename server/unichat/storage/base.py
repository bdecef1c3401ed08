from __future__ import annotations
from typing import List, Optional, Protocol, Set

from unichat.schemas.chat import ChatMessage, ChatSettings, FileData
from unichat.schemas.storage import Conversation, ConversationPatch, FileDataPatch, FileDataStats

DEFAULT_RECENT_LIMIT = 200


class ChatStore(Protocol):
    """Persistence for chat settings, conversations and attachment blobs."""

    async def initialize(self) -> None:
        ...

    async def close(self) -> None:
        ...

    # Chat settings
    async def get_chat_settings(self, settings_id: int) -> Optional[ChatSettings]:
        ...

    async def list_chat_settings(self) -> List[ChatSettings]:
        ...

    async def add_chat_settings(self, settings: ChatSettings) -> int:
        ...

    async def update_chat_settings(self, settings_id: int, settings: ChatSettings) -> bool:
        ...

    async def delete_chat_settings(self, settings_id: int) -> bool:
        ...

    # Conversations
    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        ...

    async def list_recent_conversations(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[Conversation]:
        """Newest first, without messages."""
        ...

    async def search_conversations_by_title(self, query: str) -> List[Conversation]:
        ...

    async def search_conversations_by_messages(self, query: str) -> List[Conversation]:
        ...

    async def count_conversations(self, gid: int) -> int:
        ...

    async def add_conversation(self, conversation: Conversation) -> int:
        ...

    async def update_conversation(self, conversation_id: int, conversation: Conversation) -> bool:
        ...

    async def patch_conversation(self, conversation_id: int, patch: ConversationPatch) -> bool:
        ...

    async def delete_conversation(self, conversation_id: int) -> bool:
        """Also deletes the file data referenced by the conversation's messages."""
        ...

    async def delete_conversations_by_gid(self, gid: int) -> int:
        ...

    async def delete_all_conversations(self) -> int:
        ...

    # File data
    async def get_file_data(self, file_id: int) -> Optional[FileData]:
        ...

    async def add_file_data(self, file_data: FileData) -> int:
        ...

    async def update_file_data(self, file_id: int, file_data: FileData) -> bool:
        ...

    async def patch_file_data(self, file_id: int, patch: FileDataPatch) -> bool:
        """Null or absent fields keep their stored value; a new payload resets the size."""
        ...

    async def delete_file_data(self, file_id: int) -> bool:
        ...

    async def delete_all_file_data(self) -> int:
        ...

    async def file_data_stats(self) -> FileDataStats:
        ...


def referenced_file_ids(messages: List[ChatMessage]) -> Set[int]:
    return {ref.id for message in messages for ref in message.file_data_ref if ref.id is not None}


def title_matches(title: str, query: str) -> bool:
    return query.lower() in title.lower()


def messages_match(messages: List[ChatMessage], query: str) -> bool:
    query = query.lower()
    return any(query in message.content.lower() for message in messages)

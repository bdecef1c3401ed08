from __future__ import annotations
import threading
from typing import Dict, List, Optional

from unichat.core.errors import RecordExistsError
from unichat.schemas.chat import ChatSettings, FileData
from unichat.schemas.storage import (
    Conversation,
    ConversationPatch,
    FileDataPatch,
    FileDataStats,
    estimate_size,
    patch_changes,
)
from unichat.storage.base import (
    DEFAULT_RECENT_LIMIT,
    messages_match,
    referenced_file_ids,
    title_matches,
)


class MemoryStore:
    """In-process store. Records are kept as pydantic copies and lost on restart."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._file_id = 0
        self._chat_settings: Dict[int, ChatSettings] = {}
        self._conversations: Dict[int, Conversation] = {}
        self._files: Dict[int, FileData] = {}

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    # Chat settings
    async def get_chat_settings(self, settings_id: int) -> Optional[ChatSettings]:
        with self._lock:
            row = self._chat_settings.get(settings_id)
            return row.model_copy(deep=True) if row else None

    async def list_chat_settings(self) -> List[ChatSettings]:
        with self._lock:
            # newest first
            return [row.model_copy(deep=True) for row in reversed(list(self._chat_settings.values()))]

    async def add_chat_settings(self, settings: ChatSettings) -> int:
        with self._lock:
            if settings.id is not None and settings.id in self._chat_settings:
                raise RecordExistsError(f"Chat setting {settings.id} already exists")
            settings_id = settings.id if settings.id is not None else max(self._chat_settings, default=0) + 1
            self._chat_settings[settings_id] = settings.model_copy(update={"id": settings_id}, deep=True)
            return settings_id

    async def update_chat_settings(self, settings_id: int, settings: ChatSettings) -> bool:
        with self._lock:
            if settings_id not in self._chat_settings:
                return False
            self._chat_settings[settings_id] = settings.model_copy(update={"id": settings_id}, deep=True)
            return True

    async def delete_chat_settings(self, settings_id: int) -> bool:
        with self._lock:
            return self._chat_settings.pop(settings_id, None) is not None

    # Conversations
    def _sorted_conversations(self) -> List[Conversation]:
        return sorted(self._conversations.values(), key=lambda c: c.timestamp, reverse=True)

    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        with self._lock:
            row = self._conversations.get(conversation_id)
            return row.model_copy(deep=True) if row else None

    async def list_recent_conversations(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[Conversation]:
        with self._lock:
            rows = self._sorted_conversations()[:limit]
            return [row.model_copy(update={"messages": []}, deep=True) for row in rows]

    async def search_conversations_by_title(self, query: str) -> List[Conversation]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._sorted_conversations() if title_matches(c.title, query)]

    async def search_conversations_by_messages(self, query: str) -> List[Conversation]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._sorted_conversations() if messages_match(c.messages, query)]

    async def count_conversations(self, gid: int) -> int:
        with self._lock:
            return sum(1 for c in self._conversations.values() if c.gid == gid)

    async def add_conversation(self, conversation: Conversation) -> int:
        with self._lock:
            if conversation.id in self._conversations:
                raise RecordExistsError(f"Conversation {conversation.id} already exists")
            self._conversations[conversation.id] = conversation.model_copy(deep=True)
            return conversation.id

    async def update_conversation(self, conversation_id: int, conversation: Conversation) -> bool:
        with self._lock:
            if conversation_id not in self._conversations:
                return False
            self._conversations[conversation_id] = conversation.model_copy(update={"id": conversation_id}, deep=True)
            return True

    async def patch_conversation(self, conversation_id: int, patch: ConversationPatch) -> bool:
        with self._lock:
            row = self._conversations.get(conversation_id)
            if row is None:
                return False
            self._conversations[conversation_id] = row.model_copy(update=patch_changes(patch), deep=True)
            return True

    def _drop_conversation(self, conversation_id: int) -> None:
        conversation = self._conversations.pop(conversation_id)
        for file_id in referenced_file_ids(conversation.messages):
            self._files.pop(file_id, None)

    async def delete_conversation(self, conversation_id: int) -> bool:
        with self._lock:
            if conversation_id not in self._conversations:
                return False
            self._drop_conversation(conversation_id)
            return True

    async def delete_conversations_by_gid(self, gid: int) -> int:
        with self._lock:
            doomed = [c.id for c in self._conversations.values() if c.gid == gid]
            for conversation_id in doomed:
                self._drop_conversation(conversation_id)
            return len(doomed)

    async def delete_all_conversations(self) -> int:
        with self._lock:
            count = len(self._conversations)
            self._conversations.clear()
            self._files.clear()
            return count

    # File data
    async def get_file_data(self, file_id: int) -> Optional[FileData]:
        with self._lock:
            row = self._files.get(file_id)
            return row.model_copy() if row else None

    async def add_file_data(self, file_data: FileData) -> int:
        with self._lock:
            self._file_id += 1
            self._files[self._file_id] = file_data.model_copy(
                update={"id": self._file_id, "size": estimate_size(file_data.data)}
            )
            return self._file_id

    async def update_file_data(self, file_id: int, file_data: FileData) -> bool:
        with self._lock:
            if file_id not in self._files:
                return False
            self._files[file_id] = file_data.model_copy(
                update={"id": file_id, "size": estimate_size(file_data.data)}
            )
            return True

    async def patch_file_data(self, file_id: int, patch: FileDataPatch) -> bool:
        with self._lock:
            row = self._files.get(file_id)
            if row is None:
                return False
            updates = patch_changes(patch)
            if "data" in updates:
                updates["size"] = estimate_size(updates["data"])
            self._files[file_id] = row.model_copy(update=updates)
            return True

    async def delete_file_data(self, file_id: int) -> bool:
        with self._lock:
            return self._files.pop(file_id, None) is not None

    async def delete_all_file_data(self) -> int:
        with self._lock:
            count = len(self._files)
            self._files.clear()
            return count

    async def file_data_stats(self) -> FileDataStats:
        with self._lock:
            sizes = [f.size for f in self._files.values()]
        if not sizes:
            return FileDataStats()
        return FileDataStats(total_files=len(sizes), total_size=sum(sizes), avg_size=sum(sizes) / len(sizes))

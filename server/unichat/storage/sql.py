from __future__ import annotations
import json
from typing import List, Optional

from pydantic import TypeAdapter
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlmodel import select, desc

from unichat.core.errors import RecordExistsError
from unichat.db.models import ChatSettingsRow, ConversationRow, FileDataRow, utcnow
from unichat.db.session import create_session_factory, init_db, session_scope
from unichat.schemas.chat import ChatMessage, ChatSettings, FileData
from unichat.schemas.storage import (
    Conversation,
    ConversationPatch,
    FileDataPatch,
    FileDataStats,
    estimate_size,
    patch_changes,
)
from unichat.storage.base import DEFAULT_RECENT_LIMIT, referenced_file_ids

_messages_adapter = TypeAdapter(List[ChatMessage])

_SETTINGS_FIELDS = (
    "author", "name", "description", "instructions", "model", "seed", "temperature",
    "top_p", "frequency_penalty", "presence_penalty", "max_tokens", "stream", "show_in_sidebar",
)


def _dump_messages(messages: List[ChatMessage]) -> str:
    return _messages_adapter.dump_json(messages, by_alias=True, exclude_none=True).decode("utf-8")


def _settings_from_row(row: ChatSettingsRow) -> ChatSettings:
    values = {name: getattr(row, name) for name in _SETTINGS_FIELDS}
    return ChatSettings(id=row.id, icon=json.loads(row.icon) if row.icon else None, **values)


def _apply_settings(row: ChatSettingsRow, settings: ChatSettings) -> None:
    for name in _SETTINGS_FIELDS:
        setattr(row, name, getattr(settings, name))
    row.icon = json.dumps(settings.icon) if settings.icon is not None else None


def _conversation_from_row(row: ConversationRow, with_messages: bool = True) -> Conversation:
    return Conversation(
        id=row.id,
        gid=row.gid,
        timestamp=row.timestamp,
        title=row.title,
        model=row.model,
        system_prompt=row.system_prompt or "",
        messages=_messages_adapter.validate_json(row.messages) if with_messages else [],
        marker=row.marker,
    )


def _file_from_row(row: FileDataRow) -> FileData:
    return FileData(id=row.id, data=row.data, type=row.type, source=row.source,
                    filename=row.filename, size=row.size)


class SqlStore:
    """Store backed by SQLModel tables on an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._factory = create_session_factory(engine)

    async def initialize(self) -> None:
        await init_db(self._engine)

    async def close(self) -> None:
        await self._engine.dispose()

    # Chat settings
    async def get_chat_settings(self, settings_id: int) -> Optional[ChatSettings]:
        async with session_scope(self._factory) as session:
            row = await session.get(ChatSettingsRow, settings_id)
            return _settings_from_row(row) if row else None

    async def list_chat_settings(self) -> List[ChatSettings]:
        async with session_scope(self._factory) as session:
            stmt = select(ChatSettingsRow).order_by(desc(ChatSettingsRow.created_at), desc(ChatSettingsRow.id))
            result = await session.exec(stmt)
            return [_settings_from_row(row) for row in result.all()]

    async def add_chat_settings(self, settings: ChatSettings) -> int:
        row = ChatSettingsRow(id=settings.id, author=settings.author, name=settings.name)
        _apply_settings(row, settings)
        try:
            async with session_scope(self._factory) as session:
                session.add(row)
                await session.flush()
                await session.refresh(row)
                return row.id
        except IntegrityError as e:
            raise RecordExistsError(f"Chat setting {settings.id} already exists") from e

    async def update_chat_settings(self, settings_id: int, settings: ChatSettings) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(ChatSettingsRow, settings_id)
            if row is None:
                return False
            _apply_settings(row, settings)
            row.updated_at = utcnow()
            return True

    async def delete_chat_settings(self, settings_id: int) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(ChatSettingsRow, settings_id)
            if row is None:
                return False
            await session.delete(row)
            return True

    # Conversations
    async def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        async with session_scope(self._factory) as session:
            row = await session.get(ConversationRow, conversation_id)
            return _conversation_from_row(row) if row else None

    async def list_recent_conversations(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[Conversation]:
        async with session_scope(self._factory) as session:
            stmt = select(ConversationRow).order_by(desc(ConversationRow.timestamp)).limit(limit)
            result = await session.exec(stmt)
            return [_conversation_from_row(row, with_messages=False) for row in result.all()]

    async def search_conversations_by_title(self, query: str) -> List[Conversation]:
        async with session_scope(self._factory) as session:
            stmt = (
                select(ConversationRow)
                .where(func.lower(ConversationRow.title).contains(query.lower()))
                .order_by(desc(ConversationRow.timestamp))
            )
            result = await session.exec(stmt)
            return [_conversation_from_row(row) for row in result.all()]

    async def search_conversations_by_messages(self, query: str) -> List[Conversation]:
        async with session_scope(self._factory) as session:
            stmt = (
                select(ConversationRow)
                .where(func.lower(ConversationRow.messages).contains(query.lower()))
                .order_by(desc(ConversationRow.timestamp))
            )
            result = await session.exec(stmt)
            rows = [_conversation_from_row(row) for row in result.all()]
        # The JSON column also matches keys and attachment payloads; keep message-content hits only
        lowered = query.lower()
        return [c for c in rows if any(lowered in m.content.lower() for m in c.messages)]

    async def count_conversations(self, gid: int) -> int:
        async with session_scope(self._factory) as session:
            stmt = select(func.count()).select_from(ConversationRow).where(ConversationRow.gid == gid)
            result = await session.exec(stmt)
            return result.one()

    async def add_conversation(self, conversation: Conversation) -> int:
        row = ConversationRow(
            id=conversation.id,
            gid=conversation.gid,
            timestamp=conversation.timestamp,
            title=conversation.title,
            model=conversation.model,
            system_prompt=conversation.system_prompt,
            messages=_dump_messages(conversation.messages),
            marker=conversation.marker,
        )
        try:
            async with session_scope(self._factory) as session:
                session.add(row)
            return conversation.id
        except IntegrityError as e:
            raise RecordExistsError(f"Conversation {conversation.id} already exists") from e

    async def update_conversation(self, conversation_id: int, conversation: Conversation) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(ConversationRow, conversation_id)
            if row is None:
                return False
            row.gid = conversation.gid
            row.timestamp = conversation.timestamp
            row.title = conversation.title
            row.model = conversation.model
            row.system_prompt = conversation.system_prompt
            row.messages = _dump_messages(conversation.messages)
            row.marker = conversation.marker
            row.updated_at = utcnow()
            return True

    async def patch_conversation(self, conversation_id: int, patch: ConversationPatch) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(ConversationRow, conversation_id)
            if row is None:
                return False
            for name, value in patch_changes(patch).items():
                if name == "messages":
                    value = _dump_messages(value)
                setattr(row, name, value)
            row.updated_at = utcnow()
            return True

    async def _delete_conversation_rows(self, session, rows: List[ConversationRow]) -> None:
        for row in rows:
            file_ids = referenced_file_ids(_messages_adapter.validate_json(row.messages))
            for file_id in file_ids:
                file_row = await session.get(FileDataRow, file_id)
                if file_row is not None:
                    await session.delete(file_row)
            await session.delete(row)

    async def delete_conversation(self, conversation_id: int) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(ConversationRow, conversation_id)
            if row is None:
                return False
            await self._delete_conversation_rows(session, [row])
            return True

    async def delete_conversations_by_gid(self, gid: int) -> int:
        async with session_scope(self._factory) as session:
            result = await session.exec(select(ConversationRow).where(ConversationRow.gid == gid))
            rows = list(result.all())
            await self._delete_conversation_rows(session, rows)
            return len(rows)

    async def delete_all_conversations(self) -> int:
        async with session_scope(self._factory) as session:
            conversations = list((await session.exec(select(ConversationRow))).all())
            for row in conversations:
                await session.delete(row)
            for file_row in (await session.exec(select(FileDataRow))).all():
                await session.delete(file_row)
            return len(conversations)

    # File data
    async def get_file_data(self, file_id: int) -> Optional[FileData]:
        async with session_scope(self._factory) as session:
            row = await session.get(FileDataRow, file_id)
            return _file_from_row(row) if row else None

    async def add_file_data(self, file_data: FileData) -> int:
        async with session_scope(self._factory) as session:
            row = FileDataRow(
                data=file_data.data,
                type=file_data.type,
                source=file_data.source,
                filename=file_data.filename,
                size=estimate_size(file_data.data),
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            return row.id

    async def update_file_data(self, file_id: int, file_data: FileData) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(FileDataRow, file_id)
            if row is None:
                return False
            row.data = file_data.data
            row.type = file_data.type
            row.source = file_data.source
            row.filename = file_data.filename
            row.size = estimate_size(file_data.data)
            return True

    async def patch_file_data(self, file_id: int, patch: FileDataPatch) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(FileDataRow, file_id)
            if row is None:
                return False
            for name, value in patch_changes(patch).items():
                setattr(row, name, value)
                if name == "data":
                    row.size = estimate_size(value)
            return True

    async def delete_file_data(self, file_id: int) -> bool:
        async with session_scope(self._factory) as session:
            row = await session.get(FileDataRow, file_id)
            if row is None:
                return False
            await session.delete(row)
            return True

    async def delete_all_file_data(self) -> int:
        async with session_scope(self._factory) as session:
            rows = (await session.exec(select(FileDataRow))).all()
            for row in rows:
                await session.delete(row)
            return len(rows)

    async def file_data_stats(self) -> FileDataStats:
        async with session_scope(self._factory) as session:
            stmt = select(func.count(FileDataRow.id), func.sum(FileDataRow.size), func.avg(FileDataRow.size))
            total, size, avg = (await session.exec(stmt)).one()
        return FileDataStats(total_files=total or 0, total_size=size or 0, avg_size=float(avg or 0.0))

import os
import tempfile
import unittest

from unichat.core.errors import RecordExistsError
from unichat.db.session import create_engine
from unichat.schemas.chat import ChatMessage, ChatSettings, FileData, FileDataRef
from unichat.schemas.storage import Conversation, ConversationPatch, FileDataPatch, estimate_size
from unichat.storage.memory import MemoryStore
from unichat.storage.sql import SqlStore


def _conversation(conversation_id: int, title: str, timestamp: int, gid: int = 0, messages=None) -> Conversation:
    return Conversation(
        id=conversation_id,
        gid=gid,
        timestamp=timestamp,
        title=title,
        model="gpt-4o",
        messages=messages or [ChatMessage(role="user", content=f"message for {title}")],
    )


class StoreContract:
    """Behavior shared by every ChatStore; mixed into a concrete test case."""

    store = None

    async def test_chat_settings_round_trip(self) -> None:
        first = await self.store.add_chat_settings(ChatSettings(name="Coder", icon={"type": "emoji", "value": "x"}))
        second = await self.store.add_chat_settings(ChatSettings(name="Writer", temperature=0.7))

        loaded = await self.store.get_chat_settings(first)
        self.assertEqual(loaded.name, "Coder")
        self.assertEqual(loaded.icon, {"type": "emoji", "value": "x"})
        self.assertEqual(loaded.id, first)

        listed = await self.store.list_chat_settings()
        self.assertEqual([s.id for s in listed], [second, first])

        self.assertTrue(await self.store.update_chat_settings(first, ChatSettings(name="Reviewer")))
        self.assertEqual((await self.store.get_chat_settings(first)).name, "Reviewer")
        self.assertFalse(await self.store.update_chat_settings(999, ChatSettings()))

        self.assertTrue(await self.store.delete_chat_settings(first))
        self.assertIsNone(await self.store.get_chat_settings(first))
        self.assertFalse(await self.store.delete_chat_settings(first))

    async def test_duplicate_ids_are_rejected(self) -> None:
        await self.store.add_chat_settings(ChatSettings(id=5, name="A"))
        with self.assertRaises(RecordExistsError):
            await self.store.add_chat_settings(ChatSettings(id=5, name="B"))
        await self.store.add_conversation(_conversation(1, "One", 10))
        with self.assertRaises(RecordExistsError):
            await self.store.add_conversation(_conversation(1, "Again", 20))

    async def test_recent_conversations_newest_first_without_messages(self) -> None:
        for conversation_id, timestamp in ((1, 100), (2, 300), (3, 200)):
            await self.store.add_conversation(_conversation(conversation_id, f"Chat {conversation_id}", timestamp))

        recent = await self.store.list_recent_conversations()
        self.assertEqual([c.id for c in recent], [2, 3, 1])
        self.assertTrue(all(c.messages == [] for c in recent))

        self.assertEqual([c.id for c in await self.store.list_recent_conversations(limit=2)], [2, 3])

        full = await self.store.get_conversation(2)
        self.assertEqual(full.messages[0].content, "message for Chat 2")

    async def test_search(self) -> None:
        await self.store.add_conversation(_conversation(1, "Python tips", 1))
        await self.store.add_conversation(_conversation(2, "Travel plans", 2, messages=[
            ChatMessage(role="user", content="Flights to LISBON"),
        ]))

        self.assertEqual([c.id for c in await self.store.search_conversations_by_title("python")], [1])
        self.assertEqual([c.id for c in await self.store.search_conversations_by_messages("lisbon")], [2])
        # Field names of the stored messages are not content
        self.assertEqual(await self.store.search_conversations_by_messages("role"), [])

    async def test_gid_count_and_delete(self) -> None:
        await self.store.add_conversation(_conversation(1, "A", 1, gid=7))
        await self.store.add_conversation(_conversation(2, "B", 2, gid=7))
        await self.store.add_conversation(_conversation(3, "C", 3, gid=8))

        self.assertEqual(await self.store.count_conversations(7), 2)
        self.assertEqual(await self.store.delete_conversations_by_gid(7), 2)
        self.assertEqual(await self.store.count_conversations(7), 0)
        self.assertIsNotNone(await self.store.get_conversation(3))

    async def test_patch_and_update(self) -> None:
        await self.store.add_conversation(_conversation(1, "Old title", 1))

        self.assertTrue(await self.store.patch_conversation(1, ConversationPatch(title="New title")))
        patched = await self.store.get_conversation(1)
        self.assertEqual(patched.title, "New title")
        self.assertEqual(patched.messages[0].content, "message for Old title")

        replacement = _conversation(1, "Replaced", 5, messages=[ChatMessage(role="assistant", content="done")])
        self.assertTrue(await self.store.update_conversation(1, replacement))
        self.assertEqual(await self.store.get_conversation(1), replacement)

        self.assertFalse(await self.store.patch_conversation(42, ConversationPatch(title="x")))
        self.assertFalse(await self.store.update_conversation(42, replacement))

    async def test_patch_skips_explicit_nulls(self) -> None:
        await self.store.add_conversation(_conversation(1, "Kept title", 1))
        patch = ConversationPatch.model_validate({"title": None, "marker": None, "messages": None, "gid": 4})

        self.assertTrue(await self.store.patch_conversation(1, patch))
        patched = await self.store.get_conversation(1)
        self.assertEqual(patched.title, "Kept title")
        self.assertFalse(patched.marker)
        self.assertEqual(len(patched.messages), 1)
        self.assertEqual(patched.gid, 4)
        hits = await self.store.search_conversations_by_title("kept")
        self.assertEqual([c.id for c in hits], [1])

    async def test_update_replaces_optional_fields(self) -> None:
        await self.store.add_conversation(_conversation(1, "With model", 1))

        self.assertTrue(await self.store.update_conversation(1, Conversation(id=1, title="No model")))
        loaded = await self.store.get_conversation(1)
        self.assertIsNone(loaded.model)
        self.assertEqual(loaded.messages, [])

    async def test_deleting_conversation_deletes_its_files(self) -> None:
        attached = await self.store.add_file_data(FileData(data="AAAA", type="image/png"))
        unrelated = await self.store.add_file_data(FileData(data="BBBB", type="image/png"))
        await self.store.add_conversation(_conversation(1, "With file", 1, messages=[
            ChatMessage(role="user", content="see", file_data_ref=[FileDataRef(id=attached)]),
        ]))

        loaded = await self.store.get_conversation(1)
        self.assertEqual(loaded.messages[0].file_data_ref[0].id, attached)

        self.assertTrue(await self.store.delete_conversation(1))
        self.assertIsNone(await self.store.get_conversation(1))
        self.assertIsNone(await self.store.get_file_data(attached))
        self.assertIsNotNone(await self.store.get_file_data(unrelated))
        self.assertFalse(await self.store.delete_conversation(1))

    async def test_delete_all_conversations(self) -> None:
        await self.store.add_conversation(_conversation(1, "A", 1))
        await self.store.add_conversation(_conversation(2, "B", 2))
        self.assertEqual(await self.store.delete_all_conversations(), 2)
        self.assertEqual(await self.store.list_recent_conversations(), [])

    async def test_file_data_size_and_stats(self) -> None:
        empty = await self.store.file_data_stats()
        self.assertEqual(empty.total_files, 0)
        self.assertEqual(empty.avg_size, 0.0)

        first = await self.store.add_file_data(FileData(data="AAAABBBB", type="image/png", filename="a.png"))
        second = await self.store.add_file_data(FileData(data="AAAA", type="text/plain", source="pasted"))

        loaded = await self.store.get_file_data(first)
        self.assertEqual(loaded.size, 6)
        self.assertEqual(loaded.filename, "a.png")
        self.assertEqual((await self.store.get_file_data(second)).source, "pasted")

        stats = await self.store.file_data_stats()
        self.assertEqual(stats.total_files, 2)
        self.assertEqual(stats.total_size, 9)
        self.assertEqual(stats.avg_size, 4.5)

        self.assertTrue(await self.store.update_file_data(second, FileData(data="A" * 40, type="text/plain")))
        self.assertEqual((await self.store.get_file_data(second)).size, 30)
        self.assertFalse(await self.store.update_file_data(999, FileData(type="text/plain")))

        self.assertTrue(await self.store.delete_file_data(first))
        self.assertFalse(await self.store.delete_file_data(first))

    async def test_patch_file_data(self) -> None:
        file_id = await self.store.add_file_data(FileData(data="AAAA", type="image/png", filename="a.png"))

        self.assertTrue(await self.store.patch_file_data(file_id, FileDataPatch(filename="b.png", source=None)))
        renamed = await self.store.get_file_data(file_id)
        self.assertEqual(renamed.filename, "b.png")
        self.assertEqual(renamed.source, "filename")
        self.assertEqual(renamed.size, 3)

        self.assertTrue(await self.store.patch_file_data(file_id, FileDataPatch(data="A" * 40)))
        resized = await self.store.get_file_data(file_id)
        self.assertEqual(resized.size, 30)
        self.assertEqual(resized.type, "image/png")

        self.assertFalse(await self.store.patch_file_data(999, FileDataPatch(filename="c.png")))

    async def test_delete_all_file_data(self) -> None:
        await self.store.add_file_data(FileData(data="AAAA", type="image/png"))
        await self.store.add_file_data(FileData(data="BBBB", type="image/png"))

        self.assertEqual(await self.store.delete_all_file_data(), 2)
        self.assertEqual((await self.store.file_data_stats()).total_files, 0)
        self.assertEqual(await self.store.delete_all_file_data(), 0)


class MemoryStoreTests(StoreContract, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.store = MemoryStore()
        await self.store.initialize()

    async def test_returned_records_are_copies(self) -> None:
        await self.store.add_conversation(_conversation(1, "A", 1))
        loaded = await self.store.get_conversation(1)
        loaded.messages.append(ChatMessage(role="user", content="mutated"))
        self.assertEqual(len((await self.store.get_conversation(1)).messages), 1)


class SqlStoreTests(StoreContract, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        url = "sqlite+aiosqlite:///" + os.path.join(self._tmp.name, "test.db")
        self.store = SqlStore(create_engine(url))
        await self.store.initialize()

    async def asyncTearDown(self) -> None:
        await self.store.close()
        self._tmp.cleanup()


class EstimateSizeTests(unittest.TestCase):
    def test_estimate(self) -> None:
        self.assertEqual(estimate_size("AAAABBBB"), 6)
        self.assertEqual(estimate_size(""), 0)
        self.assertEqual(estimate_size(None), 0)


if __name__ == "__main__":
    unittest.main()

import asyncio
import unittest

from unichat.core.errors import (
    ConfigurationError,
    ModelNotFoundError,
    ProviderRequestError,
    RequestCancelledError,
    RequestInProgressError,
)
from unichat.schemas.chat import ChatMessage, ChatSettings, Completion, FileData, FileDataRef
from unichat.schemas.provider import ModelDescriptor
from unichat.services.chat_service import ChatService, StreamAccumulator

HANG = object()

MODELS = [
    ModelDescriptor(id="vision-model", name="Vision", provider="fake", image_support=True),
    ModelDescriptor(id="text-model", name="Text", provider="fake"),
]


def _chunk(content: str) -> bytes:
    return ('data: {"choices":[{"delta":{"content":"%s"}}]}\n' % content).encode("utf-8")


class FakeProvider:
    name = "fake"
    display_name = "Fake"
    base_url = "http://fake"

    def __init__(self, chunks=(), completion=None, fetch_error=None) -> None:
        self.chunks = list(chunks)
        self.completion = completion or Completion(id="c-1")
        self.fetch_error = fetch_error
        self.list_calls = 0
        self.requests = []
        self.stream_closed = False

    async def list_models(self):
        self.list_calls += 1
        return list(MODELS)

    async def fetch_models(self):
        if self.fetch_error is not None:
            raise self.fetch_error
        return list(MODELS)

    async def create_completion(self, request):
        self.requests.append(request)
        return self.completion

    async def create_completion_stream(self, request):
        self.requests.append(request)
        return self._stream()

    async def _stream(self):
        try:
            for chunk in self.chunks:
                if chunk is HANG:
                    await asyncio.Event().wait()
                yield chunk
        finally:
            self.stream_closed = True


def _messages(text: str = "hi", refs=None):
    return [ChatMessage(role="user", content=text, file_data_ref=refs or [])]


class StreamAccumulatorTests(unittest.TestCase):
    def test_lines_split_across_chunks(self) -> None:
        fragments = []
        acc = StreamAccumulator(fragments.append)
        acc.feed(b'data: {"choices":[{"delta":{"con')
        acc.feed(b'tent":"Hel"}}]}\ndata: {"choices":[{"delta":{"content":"lo"}}]}\n')
        acc.flush()
        self.assertEqual(fragments, ["Hel", "lo"])
        self.assertEqual(acc.message, "Hello")

    def test_multibyte_character_split_across_chunks(self) -> None:
        fragments = []
        acc = StreamAccumulator(fragments.append)
        data = _chunk("café")
        cut = data.index(b"\xc3") + 1
        acc.feed(data[:cut])
        acc.feed(data[cut:])
        self.assertEqual(fragments, ["café"])

    def test_ignores_done_comments_and_empty_deltas(self) -> None:
        fragments = []
        acc = StreamAccumulator(fragments.append)
        acc.feed(b': keep-alive\n\nevent: ping\n')
        acc.feed(b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n')
        acc.feed(b'data: {"choices":[]}\n')
        acc.feed(b"data: [DONE]\n")
        acc.flush()
        self.assertEqual(fragments, [])
        self.assertEqual(acc.chunk_count, 2)

    def test_malformed_line_is_skipped(self) -> None:
        fragments = []
        acc = StreamAccumulator(fragments.append)
        with self.assertLogs("unichat.services.chat_service", level="WARNING") as logs:
            acc.feed(b"data: {not json}\n" + _chunk("ok"))
        self.assertEqual(fragments, ["ok"])
        self.assertEqual(len(logs.records), 1)

    def test_trailing_line_without_newline_is_flushed(self) -> None:
        fragments = []
        acc = StreamAccumulator(fragments.append)
        acc.feed(_chunk("a") + _chunk("b").rstrip(b"\n"))
        self.assertEqual(fragments, ["a"])
        acc.flush()
        self.assertEqual(fragments, ["a", "b"])


class ModelCacheTests(unittest.IsolatedAsyncioTestCase):
    async def test_models_are_cached_per_provider(self) -> None:
        first = FakeProvider()
        service = ChatService(first)

        await service.get_models()
        await service.get_models()
        self.assertEqual(first.list_calls, 1)

        second = FakeProvider()
        service.set_provider(second)
        await service.get_models()
        self.assertEqual(second.list_calls, 1)
        self.assertIs(service.provider, second)

    async def test_concurrent_lookups_share_one_fetch(self) -> None:
        provider = FakeProvider()
        service = ChatService(provider)
        await asyncio.gather(*(service.get_model_by_id("text-model") for _ in range(5)))
        self.assertEqual(provider.list_calls, 1)

    async def test_get_model_by_id(self) -> None:
        service = ChatService(FakeProvider())
        self.assertEqual((await service.get_model_by_id("vision-model")).name, "Vision")
        self.assertIsNone(await service.get_model_by_id("missing"))

    async def test_no_provider(self) -> None:
        with self.assertRaises(ConfigurationError):
            await ChatService().get_models()

    async def test_validate_credential(self) -> None:
        self.assertTrue(await ChatService(FakeProvider()).validate_credential())
        failing = FakeProvider(fetch_error=ProviderRequestError("denied", 401))
        self.assertFalse(await ChatService(failing).validate_credential())
        self.assertFalse(await ChatService().validate_credential())


class MessageMappingTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.refs = [
            FileDataRef(id=1, file_data=FileData(id=1, data="iVBORw0KGgo=", type="image/png")),
            FileDataRef(id=2, file_data=FileData(id=2, data="JVBERi0=", type="application/pdf")),
            FileDataRef(id=3),
        ]

    async def test_attachments_for_image_models(self) -> None:
        mapped = await ChatService(FakeProvider()).map_chat_messages("vision-model", _messages("look", self.refs))
        parts = mapped[0].content
        self.assertEqual([p.type for p in parts], ["text", "image_url", "application/pdf"])
        self.assertEqual(parts[0].text, "look")
        self.assertEqual(parts[1].image_url.url, "data:image/png;base64,iVBORw0KGgo=")

    async def test_attachments_dropped_for_text_models(self) -> None:
        mapped = await ChatService(FakeProvider()).map_chat_messages("text-model", _messages("look", self.refs))
        self.assertEqual([p.type for p in mapped[0].content], ["text"])

    async def test_unknown_model(self) -> None:
        with self.assertRaises(ModelNotFoundError) as ctx:
            await ChatService(FakeProvider()).map_chat_messages("missing", _messages())
        self.assertIn("missing", ctx.exception.message)


class SendMessageTests(unittest.IsolatedAsyncioTestCase):
    async def test_streaming_reports_fragments_in_order(self) -> None:
        provider = FakeProvider(chunks=[_chunk("Hel"), _chunk("lo"), b"data: [DONE]\n"])
        service = ChatService(provider)
        fragments = []

        completion = await service.send_message(
            _messages(), ChatSettings(model="text-model", temperature=0.3), fragments.append
        )

        self.assertEqual(fragments, ["Hel", "lo"])
        self.assertEqual(completion.choices[0].message.content, "Hello")
        self.assertEqual(completion.model, "text-model")
        self.assertEqual(provider.requests[0].temperature, 0.3)
        self.assertTrue(provider.stream_closed)
        self.assertFalse(service.busy)

    async def test_streaming_with_delay(self) -> None:
        service = ChatService(FakeProvider(chunks=[_chunk("a"), _chunk("b")]), stream_delay=0.001)
        completion = await service.send_message(_messages(), ChatSettings(model="text-model"))
        self.assertEqual(completion.choices[0].message.content, "ab")

    async def test_non_streaming_returns_vendor_completion(self) -> None:
        provider = FakeProvider(completion=Completion(id="vendor-id"))
        completion = await ChatService(provider).send_message(
            _messages(), ChatSettings(model="text-model", stream=False)
        )
        self.assertEqual(completion.id, "vendor-id")

    async def test_configuration_errors(self) -> None:
        with self.assertRaises(ConfigurationError):
            await ChatService().send_message(_messages(), ChatSettings(model="text-model"))
        with self.assertRaises(ConfigurationError):
            await ChatService(FakeProvider()).send_message(_messages(), ChatSettings())

    async def test_unknown_model_fails_before_request(self) -> None:
        provider = FakeProvider()
        service = ChatService(provider)
        with self.assertRaises(ModelNotFoundError):
            await service.send_message(_messages(), ChatSettings(model="missing"))
        self.assertEqual(provider.requests, [])
        self.assertFalse(service.busy)

    async def test_abort_stops_stream(self) -> None:
        provider = FakeProvider(chunks=[_chunk("Hel"), HANG, _chunk("lo")])
        service = ChatService(provider)
        fragments = []
        first = asyncio.Event()

        def on_fragment(fragment: str) -> None:
            fragments.append(fragment)
            first.set()

        task = asyncio.create_task(
            service.send_message(_messages(), ChatSettings(model="text-model"), on_fragment)
        )
        await asyncio.wait_for(first.wait(), timeout=1)
        service.abort_request()

        with self.assertRaises(RequestCancelledError):
            await asyncio.wait_for(task, timeout=1)
        self.assertEqual(fragments, ["Hel"])
        self.assertTrue(provider.stream_closed)
        self.assertFalse(service.busy)

    async def test_abort_without_request_is_noop(self) -> None:
        service = ChatService(FakeProvider())
        service.abort_request()
        self.assertFalse(service.busy)

    async def test_second_request_while_busy(self) -> None:
        provider = FakeProvider(chunks=[_chunk("x"), HANG])
        service = ChatService(provider)
        started = asyncio.Event()
        task = asyncio.create_task(
            service.send_message(_messages(), ChatSettings(model="text-model"), lambda f: started.set())
        )
        await asyncio.wait_for(started.wait(), timeout=1)

        with self.assertRaises(RequestInProgressError):
            await service.send_message(_messages(), ChatSettings(model="text-model"))

        service.abort_request()
        with self.assertRaises(RequestCancelledError):
            await task

    async def test_start_message_claims_slot_before_running(self) -> None:
        provider = FakeProvider(chunks=[HANG])
        service = ChatService(provider)

        task = service.start_message(_messages(), ChatSettings(model="text-model"))
        self.assertTrue(service.busy)
        self.assertFalse(task.done())
        with self.assertRaises(RequestInProgressError):
            service.start_message(_messages(), ChatSettings(model="text-model"))

        service.abort_request()
        with self.assertRaises(RequestCancelledError):
            await asyncio.wait_for(task, timeout=1)
        self.assertFalse(service.busy)

    async def test_start_message_configuration_errors_raise_synchronously(self) -> None:
        service = ChatService(FakeProvider())
        with self.assertRaises(ConfigurationError):
            service.start_message(_messages(), ChatSettings())
        self.assertFalse(service.busy)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple
import httpx

from unichat.core.data_urls import to_data_url
from unichat.core.errors import ProviderRequestError, UnsupportedCapabilityError, ValidationError
from unichat.providers.capabilities import describe_model
from unichat.providers.vendors import SPEECH_MODELS, VendorProfile
from unichat.schemas.chat import ChatCompletionRequest, Completion, CompletionMessage
from unichat.schemas.provider import ModelDescriptor, ProviderConfig, SpeechSettings

logger = logging.getLogger(__name__)

REASONING_MARKERS = ("o1", "o3", "o4-mini")
NO_TOP_P_MARKERS = ("gpt-5",) + REASONING_MARKERS
MAX_SPEECH_INPUT_CHARS = 4096
MIN_SPEECH_SPEED = 0.25
MAX_SPEECH_SPEED = 4.0

DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=120.0, write=30.0, pool=10.0)


def is_reasoning_model(model_id: str) -> bool:
    return any(marker in model_id for marker in REASONING_MARKERS)


def supports_top_p(model_id: str) -> bool:
    return not any(marker in model_id for marker in NO_TOP_P_MARKERS)


def filter_request_parameters(request: ChatCompletionRequest) -> ChatCompletionRequest:
    """Drop sampling parameters the target model family rejects."""
    updates: Dict[str, Any] = {}
    if not supports_top_p(request.model):
        updates["top_p"] = None
    if is_reasoning_model(request.model):
        updates.update(temperature=None, frequency_penalty=None, presence_penalty=None)
    return request.model_copy(update=updates)


def convert_messages(messages: Sequence[CompletionMessage], flat_content: bool) -> List[Dict[str, Any]]:
    converted: List[Dict[str, Any]] = []
    for message in messages:
        payload = message.model_dump(exclude_none=True)
        if flat_content and isinstance(message.content, list):
            # Vendors without multi-part support only get the text, image parts are dropped
            payload["content"] = "\n".join(
                part.text for part in message.content if part.type == "text" and part.text
            )
        converted.append(payload)
    return converted


def normalize_base_url(base_url: str) -> str:
    base_url = base_url.rstrip("/")
    if base_url.endswith("/v1") or base_url.endswith("openai"):
        return base_url
    return f"{base_url}/v1"


def describe_http_error(display_name: str, status: int, body: str) -> str:
    if status == 400:
        return f"[{display_name}] Bad request. Please verify the model id and payload parameters."
    if status in (401, 403):
        return f"[{display_name}] Authentication/permission issue. Check your API key and model access."
    if status == 402:
        return f"[{display_name}] Payment required. Please enable billing or choose a model available to your plan."
    if status == 429:
        return f"[{display_name}] Too many requests. You have hit the rate limit. Please wait a moment and try again."
    message = f"[{display_name}] request failed with status {status}"
    if body:
        message += f"\nProvider response: {body}"
    return message


class ResponseStream:
    """Raw body bytes of a streaming response.

    The HTTP client is released once the body is exhausted, a read fails, or
    `aclose` is called, whether or not iteration ever started.
    """

    def __init__(self, provider_name: str, client: httpx.AsyncClient, resp: httpx.Response) -> None:
        self._provider_name = provider_name
        self._client = client
        self._resp = resp
        self._chunks = resp.aiter_bytes()
        self.closed = False

    def __aiter__(self) -> "ResponseStream":
        return self

    async def __anext__(self) -> bytes:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            await self.aclose()
            raise
        except httpx.HTTPError as e:
            await self.aclose()
            raise ProviderRequestError(f"[{self._provider_name}] stream interrupted: {e}") from e

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        await self._resp.aclose()
        await self._client.aclose()


class UnifiedOpenAIProvider:
    """Adapter for any vendor exposing the OpenAI chat-completions wire format.

    Vendor differences live in the VendorProfile. Every call opens its own
    httpx client; streaming responses keep theirs open until the returned
    iterator is exhausted or closed.
    """

    def __init__(
        self,
        profile: VendorProfile,
        config: ProviderConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[httpx.Timeout] = None,
        max_attempts: int = 3,
        backoff: float = 0.8,
    ) -> None:
        self.profile = profile
        self.name = profile.name
        self.display_name = profile.display_name
        self.base_url = config.base_url or profile.default_base_url
        self.api_url = normalize_base_url(self.base_url)
        self._api_key = config.api_key
        self._transport = transport
        self._timeout = timeout or DEFAULT_TIMEOUT
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff

    def __repr__(self) -> str:
        return f"UnifiedOpenAIProvider(name={self.name!r}, base_url={self.api_url!r})"

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            headers=headers,
            trust_env=True,
        )

    # Models

    async def fetch_models(self) -> List[ModelDescriptor]:
        """List models from the vendor API. Raises ProviderRequestError on failure."""
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.api_url}/models")
                if not resp.is_success:
                    raise ProviderRequestError(
                        describe_http_error(self.display_name, resp.status_code, resp.text),
                        resp.status_code,
                    )
                payload = resp.json()
            entries = payload.get("data", []) if isinstance(payload, dict) else []
            return [
                describe_model(self.name, entry["id"], entry)
                for entry in entries
                if isinstance(entry, dict) and entry.get("id")
            ]
        except httpx.HTTPError as e:
            raise ProviderRequestError(f"[{self.name}] model listing failed: {e}") from e
        except (ValueError, TypeError) as e:
            # Non-JSON body or listing fields of the wrong type
            raise ProviderRequestError(f"[{self.name}] unexpected model listing: {e}") from e

    async def list_models(self) -> List[ModelDescriptor]:
        try:
            return await self.fetch_models()
        except ProviderRequestError as e:
            logger.warning(
                "Failed to fetch models from %s API, using fallback models: %s", self.display_name, e
            )
            return list(self.profile.fallback_models)

    async def list_speech_models(self) -> List[ModelDescriptor]:
        if not self.profile.supports_speech:
            return []
        return [
            ModelDescriptor(id=model_id, name=name, provider=self.name, preferred=preferred)
            for model_id, name, preferred in SPEECH_MODELS
        ]

    # Completions

    def build_payload(self, request: ChatCompletionRequest, stream: bool) -> Dict[str, Any]:
        filtered = filter_request_parameters(request)
        payload = filtered.model_dump(exclude_none=True, exclude={"messages"})
        payload["messages"] = convert_messages(filtered.messages, self.profile.flat_content)
        payload["stream"] = stream
        return payload

    async def _send(self, path: str, payload: Dict[str, Any], stream: bool = False) -> Tuple[httpx.AsyncClient, httpx.Response]:
        """POST with retry on transport errors. The caller owns the returned client."""
        url = f"{self.api_url}{path}"
        backoff = self._backoff
        attempt = 0
        while True:
            attempt += 1
            client = self._client()
            try:
                resp = await client.send(client.build_request("POST", url, json=payload), stream=stream)
            except BaseException as e:
                # Includes cancellation of a pending send
                await client.aclose()
                if not isinstance(e, httpx.TransportError):
                    raise
                if attempt < self._max_attempts:
                    logger.info(
                        "[%s] transient error on %s (attempt %d/%d): %s",
                        self.name, path, attempt, self._max_attempts, e,
                    )
                    await asyncio.sleep(backoff)
                    backoff *= 2
                    continue
                raise ProviderRequestError(
                    f"[{self.name}] request failed after {attempt} attempts: {e}"
                ) from e

            if resp.is_success:
                return client, resp

            try:
                body = (await resp.aread()).decode("utf-8", errors="ignore")
            except httpx.HTTPError:
                body = ""
            finally:
                await resp.aclose()
                await client.aclose()
            raise ProviderRequestError(
                describe_http_error(self.display_name, resp.status_code, body), resp.status_code
            )

    async def create_completion(self, request: ChatCompletionRequest) -> Completion:
        client, resp = await self._send("/chat/completions", self.build_payload(request, stream=False))
        try:
            return Completion.model_validate(resp.json())
        except ValueError as e:
            raise ProviderRequestError(f"[{self.name}] invalid completion response: {e}") from e
        finally:
            await client.aclose()

    async def create_completion_stream(self, request: ChatCompletionRequest) -> AsyncIterator[bytes]:
        client, resp = await self._send(
            "/chat/completions", self.build_payload(request, stream=True), stream=True
        )
        return ResponseStream(self.name, client, resp)

    # Speech

    async def text_to_speech(self, text: str, settings: SpeechSettings) -> str:
        if not self.profile.supports_speech:
            raise UnsupportedCapabilityError(f"Text-to-speech is not supported by {self.display_name}")
        if len(text) > MAX_SPEECH_INPUT_CHARS:
            raise ValidationError(
                f"Input text exceeds the maximum length of {MAX_SPEECH_INPUT_CHARS} characters."
            )
        if settings.speed < MIN_SPEECH_SPEED or settings.speed > MAX_SPEECH_SPEED:
            raise ValidationError(f"Speed must be between {MIN_SPEECH_SPEED} and {MAX_SPEECH_SPEED}.")

        payload = {
            "model": settings.model,
            "voice": settings.voice,
            "input": text,
            "speed": settings.speed,
            "response_format": "mp3",
        }
        client, resp = await self._send("/audio/speech", payload)
        try:
            audio = resp.content
        finally:
            await client.aclose()
        return to_data_url("audio/mpeg", audio)

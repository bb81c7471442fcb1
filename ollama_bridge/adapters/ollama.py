"""
OllamaAdapter - ContentGenerator implementation for a local Ollama server.

Translates provider-agnostic requests into /api/chat and /api/embed calls
and rebuilds provider-agnostic responses. Each call opens its own
httpx.AsyncClient, so concurrent calls share no mutable state.

On construction a one-shot connectivity probe (/api/tags) is started in the
background. It never blocks or fails construction; problems are reported to
the warning sink only.
"""

import asyncio
import json
import logging
import math
import threading
from collections.abc import Mapping, Sequence
from typing import Any, AsyncGenerator, Callable, Optional, Union

import httpx
from pydantic import ValidationError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ollama_bridge.adapters.messages import contents_to_messages, response_from_ollama
from ollama_bridge.adapters.stream import StreamDecoder
from ollama_bridge.adapters.tool_bridge import tools_to_ollama
from ollama_bridge.adapters.wire import (
    OllamaChatRequest,
    OllamaChatResponse,
    OllamaEmbedRequest,
    OllamaEmbedResponse,
    OllamaOptions,
    OllamaTagsResponse,
)
from ollama_bridge.config import (
    CHARS_PER_TOKEN,
    CONNECTIVITY_TIMEOUT_SECONDS,
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_HOST,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SECONDS,
    THINK_CLOSE_TAG,
    THINK_OPEN_TAG,
    OllamaSettings,
    get_connect_retry_attempts,
)
from ollama_bridge.json_extract import extract_json
from ollama_bridge.schema import (
    Content,
    ContentEmbedding,
    CountTokensRequest,
    CountTokensResponse,
    EmbedContentRequest,
    EmbedContentResponse,
    GenerateContentRequest,
    GenerateContentResponse,
    GenerationConfig,
    Part,
)

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = (
    "You are a JSON-only assistant. You must only respond with valid JSON. "
    "Do not use thinking tags or any other formatting."
)

JSON_USER_PROMPT = (
    "IMPORTANT: You must respond with valid JSON only. Do not include <think> tags, "
    "explanations, thoughts, or any other text. Only output the JSON object that "
    "follows this exact schema: {schema}\n\nOriginal request:"
)


# ─────────────────────────────────────────────────────────────────────
# ERRORS
# ─────────────────────────────────────────────────────────────────────

class OllamaError(Exception):
    """Human-readable error from the Ollama adapter."""
    pass


class OllamaAPIError(OllamaError):
    """Ollama answered with a non-2xx status."""

    def __init__(self, status_code: int, reason: str, detail: str = "", prefix: str = "Ollama API error"):
        self.status_code = status_code
        self.reason = reason
        self.detail = detail
        message = f"{prefix}: {status_code} {reason}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class OllamaStreamError(OllamaError):
    """A streamed call produced no readable body."""
    pass


class OllamaEmptyResponseError(OllamaError):
    """generate_json received empty text from the server."""
    pass


def parse_ollama_error(body: bytes) -> str:
    """Extract the server's error text; Ollama returns {"error": "..."}."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode(errors="replace")[:200]
    if isinstance(data, dict):
        error = data.get("error", "")
        if isinstance(error, dict):
            return str(error.get("message", ""))[:200]
        return str(error)[:200]
    return ""


def error_from_record(record: Any) -> Optional[str]:
    """Return the server's error text if a chat record is an {"error": ...} object."""
    if isinstance(record, dict) and record.get("error"):
        return str(record["error"])
    return None


def is_retryable_error(exception: BaseException) -> bool:
    """Connection refusals and timeouts are worth another probe attempt."""
    return isinstance(exception, (httpx.ConnectError, httpx.TimeoutException))


RequestT = Union[GenerateContentRequest, Mapping[str, Any]]


class OllamaAdapter:
    """
    Ollama implementation of ContentGenerator.

    Holds only static configuration: base URL, generation model, embedding
    model, optional bearer token and timeout.

    Usage:
        adapter = OllamaAdapter(host="http://localhost:11434", model="qwen3:8b")
        response = await adapter.generate({"contents": [...]})
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        model: str = DEFAULT_MODEL,
        embedding_model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        check_connection: bool = True,
        warn: Optional[Callable[[str], None]] = None,
        connect_retry_attempts: Optional[int] = None,
    ):
        """
        Args:
            host: Ollama base URL (trailing slash is stripped)
            model: Model used for chat and generate_json
            embedding_model: Model used for embed (default: nomic-embed-text)
            api_key: Optional bearer token sent on every request
            timeout_seconds: Timeout for chat and embed calls
            check_connection: Start the background connectivity probe
            warn: Warning sink for probe results (default: logger.warning)
            connect_retry_attempts: Probe attempts (default: from environment)
        """
        self._host = host.rstrip("/")
        self._model = model
        self._embedding_model = embedding_model or DEFAULT_EMBEDDING_MODEL
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._warn = warn or logger.warning
        self._connect_attempts = connect_retry_attempts or get_connect_retry_attempts()
        self._decoder = StreamDecoder()

        self.connectivity_task: Optional[asyncio.Task] = None
        self._connectivity_thread: Optional[threading.Thread] = None
        if check_connection:
            self._start_connectivity_check()

    @classmethod
    def from_settings(cls, settings: OllamaSettings, **kwargs: Any) -> "OllamaAdapter":
        return cls(
            host=settings.host,
            model=settings.model,
            embedding_model=settings.embedding_model,
            api_key=settings.api_key,
            timeout_seconds=settings.timeout_seconds,
            **kwargs,
        )

    @classmethod
    def from_env(cls, **kwargs: Any) -> "OllamaAdapter":
        """Build an adapter from OLLAMA_* environment variables."""
        return cls.from_settings(OllamaSettings.from_env(), **kwargs)

    @property
    def host(self) -> str:
        return self._host

    @property
    def model(self) -> str:
        return self._model

    @property
    def embedding_model(self) -> str:
        return self._embedding_model

    # ─────────────────────────────────────────────────────────────────
    # GENERATION
    # ─────────────────────────────────────────────────────────────────

    async def generate(self, request: RequestT) -> GenerateContentResponse:
        """Unary chat call. Raises OllamaAPIError on a non-2xx status."""
        chat_request = self._build_chat_request(request, stream=False)
        data = await self._post_json("/api/chat", chat_request.to_wire())
        return response_from_ollama(self._parse_chat_response(data))

    async def generate_stream(
        self,
        request: RequestT,
        abort: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[GenerateContentResponse, None]:
        """
        Streamed chat call.

        Yields one GenerateContentResponse per NDJSON record as it arrives.
        Closing the generator (or cancelling the consuming task) closes the
        HTTP response and unblocks a pending read. Setting ``abort`` stops
        emission between records; it is only checked when the next network
        chunk arrives, so it does not interrupt a stalled read.

        Raises:
            OllamaAPIError: Non-2xx status
            OllamaError: The server reported an error record mid-stream
            OllamaStreamError: The response body could not be read
        """
        chat_request = self._build_chat_request(request, stream=True)
        if abort is not None and abort.is_set():
            return

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                async with client.stream(
                    "POST",
                    f"{self._host}/api/chat",
                    json=chat_request.to_wire(),
                    headers=self._headers(),
                ) as response:
                    if not response.is_success:
                        error_body = await response.aread()
                        raise OllamaAPIError(
                            response.status_code,
                            response.reason_phrase,
                            parse_ollama_error(error_body),
                        )

                    async for record in self._decoder.decode(response.aiter_bytes(), abort=abort):
                        server_error = error_from_record(record)
                        if server_error is not None:
                            raise OllamaError(f"Ollama stream error: {server_error}")
                        try:
                            wire = OllamaChatResponse.model_validate(record)
                        except ValidationError as e:
                            logger.warning(f"Skipping malformed Ollama stream record: {e}")
                            continue
                        yield response_from_ollama(wire)
        except (httpx.StreamError, httpx.RemoteProtocolError) as e:
            raise OllamaStreamError(f"No readable response body from Ollama: {e}") from e
        except httpx.TimeoutException as e:
            raise OllamaError(f"Ollama timeout for '{self._model}': {e}") from e
        except httpx.HTTPError as e:
            raise OllamaError(f"Ollama HTTP error for '{self._model}': {e}") from e

    async def generate_json(
        self,
        contents: Sequence[Union[Content, Mapping[str, Any]]],
        schema: Mapping[str, Any],
        config: Optional[Union[GenerationConfig, Mapping[str, Any]]] = None,
    ) -> Any:
        """
        Ask for JSON matching ``schema`` and recover it from the reply.

        Ollama cannot enforce a schema, so the reply goes through
        extract_json(), which always returns a value.

        Raises:
            OllamaEmptyResponseError: The server returned empty text
        """
        if config is None:
            config = GenerationConfig()
        elif not isinstance(config, GenerationConfig):
            config = GenerationConfig.model_validate(config)

        schema_json = json.dumps(schema, separators=(",", ":"))
        enhanced = [
            Content(role="system", parts=(Part.from_text(JSON_SYSTEM_PROMPT),)),
            Content(role="user", parts=(Part.from_text(JSON_USER_PROMPT.format(schema=schema_json)),)),
            *(c if isinstance(c, Content) else Content.model_validate(c) for c in contents),
        ]

        chat_request = OllamaChatRequest(
            model=self._model,
            messages=contents_to_messages(enhanced),
            stream=False,
            format="json",
            options=OllamaOptions(
                temperature=config.temperature or 0,
                top_p=config.top_p or 1,
                num_predict=config.max_output_tokens,
                stop=[*(config.stop_sequences or ()), THINK_OPEN_TAG, THINK_CLOSE_TAG],
            ),
        )
        data = await self._post_json("/api/chat", chat_request.to_wire())
        text = self._parse_chat_response(data).message.content or ""
        if not text:
            raise OllamaEmptyResponseError("API returned an empty response for generate_json.")
        return extract_json(text, schema)

    # ─────────────────────────────────────────────────────────────────
    # TOKENS / EMBEDDINGS
    # ─────────────────────────────────────────────────────────────────

    async def count_tokens(
        self, request: Union[CountTokensRequest, Mapping[str, Any]]
    ) -> CountTokensResponse:
        """
        Estimate tokens as ceil(chars / 4).

        Ollama has no token counting endpoint; this is a rough estimate.
        """
        if not isinstance(request, CountTokensRequest):
            request = CountTokensRequest.model_validate(request)
        total_chars = sum(
            len(part.text)
            for content in request.contents
            for part in content.parts
            if part.text
        )
        return CountTokensResponse(total_tokens=math.ceil(total_chars / CHARS_PER_TOKEN))

    async def embed(
        self, request: Union[EmbedContentRequest, Mapping[str, Any]]
    ) -> EmbedContentResponse:
        """Embed the first text part of the first content item."""
        if not isinstance(request, EmbedContentRequest):
            request = EmbedContentRequest.model_validate(request)

        text = ""
        if request.contents:
            text = next(
                (part.text for part in request.contents[0].parts if part.text is not None),
                "",
            )

        embed_request = OllamaEmbedRequest(model=self._embedding_model, input=text)
        data = await self._post_json(
            "/api/embed", embed_request.to_wire(), error_prefix="Ollama embed error"
        )
        try:
            wire = OllamaEmbedResponse.model_validate(data)
        except ValidationError as e:
            raise OllamaError(f"Unexpected embed response from Ollama: {e}") from e

        values = wire.embeddings[0] if wire.embeddings else []
        return EmbedContentResponse(embeddings=(ContentEmbedding(values=tuple(values)),))

    # ─────────────────────────────────────────────────────────────────
    # CONNECTIVITY
    # ─────────────────────────────────────────────────────────────────

    async def list_models(self) -> list[str]:
        """
        Return model names installed on the server (GET /api/tags).

        Connection errors and timeouts are retried; everything else raises
        OllamaError immediately.
        """

        @retry(
            stop=stop_after_attempt(self._connect_attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception(is_retryable_error),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            reraise=True,
        )
        async def fetch_tags() -> httpx.Response:
            async with httpx.AsyncClient(timeout=CONNECTIVITY_TIMEOUT_SECONDS) as client:
                return await client.get(f"{self._host}/api/tags", headers=self._headers())

        try:
            response = await fetch_tags()
        except httpx.HTTPError as e:
            raise OllamaError(str(e) or type(e).__name__) from e

        if not response.is_success:
            raise OllamaError(f"Ollama server returned {response.status_code}")

        try:
            tags = OllamaTagsResponse.model_validate(response.json())
        except (json.JSONDecodeError, ValidationError) as e:
            raise OllamaError(f"Unexpected /api/tags response: {e}") from e
        return [m.name for m in tags.models]

    async def check_connection(self) -> Optional[list[str]]:
        """
        Probe the server and report problems to the warning sink.

        Never raises. Returns the installed model names, or None when the
        server could not be reached.
        """
        try:
            models = await self.list_models()
        except OllamaError as e:
            self._warn(f"Could not connect to Ollama at {self._host}: {e}")
            self._warn("Make sure Ollama is running and accessible.")
            return None

        # Tags carry an explicit tag suffix ("llama3.2:latest")
        if self._model not in models and f"{self._model}:latest" not in models:
            self._warn(
                f"Model '{self._model}' not found in Ollama. "
                f"Available models: {', '.join(models)}"
            )
            self._warn(f"Pull the model with: ollama pull {self._model}")
        return models

    def _start_connectivity_check(self) -> None:
        """Detach the probe from construction: a task if a loop runs, else a daemon thread."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            self.connectivity_task = loop.create_task(self.check_connection())
            return

        self._connectivity_thread = threading.Thread(
            target=asyncio.run,
            args=(self.check_connection(),),
            name="ollama-connectivity-check",
            daemon=True,
        )
        self._connectivity_thread.start()

    # ─────────────────────────────────────────────────────────────────
    # INTERNALS
    # ─────────────────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_chat_request(self, request: RequestT, stream: bool) -> OllamaChatRequest:
        if not isinstance(request, GenerateContentRequest):
            request = GenerateContentRequest.model_validate(request)

        options = None
        config = request.generation_config
        if config is not None:
            options = OllamaOptions(
                temperature=config.temperature,
                top_p=config.top_p,
                num_predict=config.max_output_tokens,
                stop=list(config.stop_sequences) if config.stop_sequences is not None else None,
            )

        return OllamaChatRequest(
            model=self._model,
            messages=contents_to_messages(request.contents),
            stream=stream,
            options=options,
            tools=tools_to_ollama(request.tools) or None,
        )

    async def _post_json(
        self,
        path: str,
        payload: dict[str, Any],
        error_prefix: str = "Ollama API error",
    ) -> Any:
        logger.debug(f"POST {self._host}{path} (model={payload.get('model')})")
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._host}{path}", json=payload, headers=self._headers()
                )
        except httpx.TimeoutException as e:
            raise OllamaError(f"Ollama timeout for '{payload.get('model')}': {e}") from e
        except httpx.HTTPError as e:
            raise OllamaError(f"Ollama HTTP error for '{payload.get('model')}': {e}") from e

        if not response.is_success:
            raise OllamaAPIError(
                response.status_code,
                response.reason_phrase,
                parse_ollama_error(response.content),
                prefix=error_prefix,
            )

        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise OllamaError(f"Ollama returned invalid JSON: {response.text[:200]}") from e

    @staticmethod
    def _parse_chat_response(data: Any) -> OllamaChatResponse:
        server_error = error_from_record(data)
        if server_error is not None:
            raise OllamaError(f"Ollama chat error: {server_error}")
        try:
            return OllamaChatResponse.model_validate(data)
        except ValidationError as e:
            raise OllamaError(f"Unexpected chat response from Ollama: {e}") from e

"""
ContentGenerator Protocol - the caller-facing content-generation contract.

This is the WHAT (interface), not the HOW (implementation).
See ollama.py for the Ollama implementation.
"""

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any, AsyncGenerator, Optional, Protocol, Union

from ollama_bridge.schema import (
    Content,
    CountTokensRequest,
    CountTokensResponse,
    EmbedContentRequest,
    EmbedContentResponse,
    GenerateContentRequest,
    GenerateContentResponse,
    GenerationConfig,
)


class ContentGenerator(Protocol):
    """
    Contract for content-generation backends.

    Implementations must provide:
    - Unary and streamed generation
    - Token estimation
    - Embeddings
    - Structured (JSON) generation
    """

    async def generate(
        self, request: Union[GenerateContentRequest, Mapping[str, Any]]
    ) -> GenerateContentResponse:
        """Return one complete response for the conversation."""
        ...

    def generate_stream(
        self,
        request: Union[GenerateContentRequest, Mapping[str, Any]],
        abort: Optional[asyncio.Event] = None,
    ) -> AsyncGenerator[GenerateContentResponse, None]:
        """
        Stream partial responses as they arrive.

        Yields:
            One GenerateContentResponse per server record

        Raises:
            Exception on transport error (fail loudly)
        """
        ...

    async def count_tokens(
        self, request: Union[CountTokensRequest, Mapping[str, Any]]
    ) -> CountTokensResponse:
        ...

    async def embed(
        self, request: Union[EmbedContentRequest, Mapping[str, Any]]
    ) -> EmbedContentResponse:
        ...

    async def generate_json(
        self,
        contents: Sequence[Union[Content, Mapping[str, Any]]],
        schema: Mapping[str, Any],
        config: Optional[Union[GenerationConfig, Mapping[str, Any]]] = None,
    ) -> Any:
        """
        Return a JSON value shaped like ``schema``.

        Never fails on unparseable output; implementations fall back to a
        schema-shaped value instead.
        """
        ...

"""
Ollama wire models.

Explicit Pydantic shapes for every JSON object exchanged with an Ollama
server (/api/chat, /api/embed, /api/tags). Responses are validated here at
the boundary so the translators only ever see well-formed objects; unknown
server fields are ignored.

Requests are serialized with ``to_wire()``, which drops unset optional fields
(the server treats a missing key and a null differently for ``images``,
``tool_calls`` and ``options``).
"""

import json
from collections.abc import Mapping
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


# ─────────────────────────────────────────────────────────────────────
# TOOLS
# ─────────────────────────────────────────────────────────────────────

class OllamaFunctionCall(_WireModel):
    name: str = ""
    arguments: str = "{}"

    @field_validator("arguments", mode="before")
    @classmethod
    def encode_arguments(cls, value: Any) -> Any:
        """Arguments are always JSON text; newer servers send an object."""
        if value is None:
            return "{}"
        if isinstance(value, Mapping):
            return json.dumps(dict(value))
        return value


class OllamaToolCall(_WireModel):
    # Ollama omits "type" on tool calls it generates; they are all functions.
    type: str = "function"
    function: OllamaFunctionCall


class OllamaFunctionSpec(_WireModel):
    name: str
    description: Optional[str] = None
    parameters: Optional[dict[str, Any]] = None


class OllamaTool(_WireModel):
    type: Literal["function"] = "function"
    function: OllamaFunctionSpec


# ─────────────────────────────────────────────────────────────────────
# CHAT
# ─────────────────────────────────────────────────────────────────────

class OllamaMessage(_WireModel):
    role: Literal["system", "user", "assistant"]
    content: str = ""
    images: Optional[list[str]] = None
    tool_calls: Optional[list[OllamaToolCall]] = None


class OllamaOptions(_WireModel):
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    num_predict: Optional[int] = None
    stop: Optional[list[str]] = None

    def is_empty(self) -> bool:
        return not self.to_wire()


class OllamaChatRequest(_WireModel):
    model: str
    messages: list[OllamaMessage]
    stream: bool = False
    format: Optional[Literal["json"]] = None
    options: Optional[OllamaOptions] = None
    tools: Optional[list[OllamaTool]] = None

    def to_wire(self) -> dict[str, Any]:
        payload = super().to_wire()
        if self.options is not None and self.options.is_empty():
            payload.pop("options", None)
        if not self.tools:
            payload.pop("tools", None)
        return payload


class OllamaResponseMessage(_WireModel):
    role: str = "assistant"
    content: Optional[str] = ""
    tool_calls: Optional[list[OllamaToolCall]] = None


class OllamaChatResponse(_WireModel):
    model: Optional[str] = None
    created_at: Optional[str] = None
    message: OllamaResponseMessage
    done: bool = False
    total_duration: Optional[int] = None
    prompt_eval_count: Optional[int] = None
    eval_count: Optional[int] = None


# ─────────────────────────────────────────────────────────────────────
# EMBEDDINGS / DISCOVERY
# ─────────────────────────────────────────────────────────────────────

class OllamaEmbedRequest(_WireModel):
    model: str
    input: str


class OllamaEmbedResponse(_WireModel):
    embeddings: list[list[float]] = Field(default_factory=list)


class OllamaModelInfo(_WireModel):
    name: str


class OllamaTagsResponse(_WireModel):
    models: list[OllamaModelInfo] = Field(default_factory=list)

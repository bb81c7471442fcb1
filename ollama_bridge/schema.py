"""
Provider-agnostic request/response models.

These mirror the Gemini-style content-generation contract callers already
speak (Content turns made of typed Parts). Adapters translate them to and
from backend wire formats; nothing in here knows about Ollama.

Field names are snake_case; the camelCase names used by the JSON form of the
contract (inlineData, functionCall, usageMetadata, ...) are accepted as aliases.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ─────────────────────────────────────────────────────────────────────
# CONTENT
# ─────────────────────────────────────────────────────────────────────

class Blob(_Model):
    """Inline binary payload, base64-encoded."""
    mime_type: Optional[str] = None
    data: Optional[str] = None


class FunctionCall(_Model):
    name: str
    args: Optional[dict[str, Any]] = None


class FunctionResponse(_Model):
    name: Optional[str] = None
    response: Any = None


_PART_VARIANTS = ("text", "inline_data", "function_call", "function_response")


class Part(_Model):
    """
    One typed unit of conversational content.

    Exactly one of the variant fields is populated.
    """
    text: Optional[str] = None
    inline_data: Optional[Blob] = None
    function_call: Optional[FunctionCall] = None
    function_response: Optional[FunctionResponse] = None

    @model_validator(mode="after")
    def check_single_variant(self) -> "Part":
        populated = [name for name in _PART_VARIANTS if getattr(self, name) is not None]
        if len(populated) != 1:
            raise ValueError(
                f"Part must populate exactly one of {', '.join(_PART_VARIANTS)}; "
                f"got {populated or 'none'}"
            )
        return self

    @classmethod
    def from_text(cls, text: str) -> "Part":
        return cls(text=text)

    @classmethod
    def from_function_call(cls, name: str, args: Optional[Mapping[str, Any]] = None) -> "Part":
        return cls(function_call=FunctionCall(name=name, args=dict(args) if args is not None else None))

    @classmethod
    def from_function_response(cls, name: Optional[str], response: Any) -> "Part":
        return cls(function_response=FunctionResponse(name=name, response=response))


class Content(_Model):
    """A single conversation turn."""
    role: Literal["user", "model", "system"] = "user"
    parts: tuple[Part, ...] = ()


def _coerce_contents(value: Any) -> Any:
    """Allow a single turn wherever a list of turns is expected."""
    if isinstance(value, (Content, Mapping)):
        return [value]
    return value


# ─────────────────────────────────────────────────────────────────────
# REQUESTS
# ─────────────────────────────────────────────────────────────────────

class GenerationConfig(_Model):
    """Sampling options understood by every backend."""
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_output_tokens: Optional[int] = None
    stop_sequences: Optional[tuple[str, ...]] = None


class FunctionDeclaration(_Model):
    name: str
    description: Optional[str] = None
    parameters: Optional[dict[str, Any]] = None


class Tool(_Model):
    """A group of function declarations offered to the model."""
    function_declarations: Optional[tuple[FunctionDeclaration, ...]] = None


class GenerateContentRequest(_Model):
    contents: tuple[Content, ...]
    generation_config: Optional[GenerationConfig] = None
    tools: Optional[tuple[Tool, ...]] = None

    @field_validator("contents", mode="before")
    @classmethod
    def wrap_single_turn(cls, value: Any) -> Any:
        return _coerce_contents(value)


class CountTokensRequest(_Model):
    contents: tuple[Content, ...]

    @field_validator("contents", mode="before")
    @classmethod
    def wrap_single_turn(cls, value: Any) -> Any:
        return _coerce_contents(value)


class EmbedContentRequest(_Model):
    contents: tuple[Content, ...]

    @field_validator("contents", mode="before")
    @classmethod
    def wrap_single_turn(cls, value: Any) -> Any:
        return _coerce_contents(value)


# ─────────────────────────────────────────────────────────────────────
# RESPONSES
# ─────────────────────────────────────────────────────────────────────

class FinishReason(str, Enum):
    """Why a candidate stopped. Ollama only reports that it is done."""
    STOP = "STOP"


class UsageMetadata(_Model):
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0


class Candidate(_Model):
    content: Content
    finish_reason: Optional[FinishReason] = None
    index: int = 0


class GenerateContentResponse(_Model):
    candidates: tuple[Candidate, ...] = ()
    usage_metadata: Optional[UsageMetadata] = None

    @property
    def text(self) -> str:
        """Concatenated text of the first candidate ("" if none)."""
        if not self.candidates:
            return ""
        return "".join(p.text for p in self.candidates[0].content.parts if p.text)

    @property
    def function_calls(self) -> list[FunctionCall]:
        """Function calls requested by the first candidate, in order."""
        if not self.candidates:
            return []
        return [p.function_call for p in self.candidates[0].content.parts if p.function_call]


class CountTokensResponse(_Model):
    total_tokens: int
    cached_content_token_count: int = 0


class ContentEmbedding(_Model):
    values: tuple[float, ...] = ()


class EmbedContentResponse(_Model):
    embeddings: tuple[ContentEmbedding, ...] = ()

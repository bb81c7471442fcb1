"""
Message and response translation between Content turns and Ollama chat.

Ollama has no tool-result role, so function responses are folded into the
turn's text as "Function <name> returned: <json>". Non-image inline data has
no place on the wire and is dropped.
"""

import json
from collections.abc import Sequence
from typing import Optional

from ollama_bridge.adapters.tool_bridge import function_call_to_ollama, tool_call_to_part
from ollama_bridge.adapters.wire import OllamaChatResponse, OllamaMessage
from ollama_bridge.schema import (
    Candidate,
    Content,
    FinishReason,
    GenerateContentResponse,
    Part,
    UsageMetadata,
)

ROLE_MAP = {"model": "assistant"}


def map_role(role: str) -> str:
    """model -> assistant; every other role passes through."""
    return ROLE_MAP.get(role, role)


def content_to_message(content: Content) -> Optional[OllamaMessage]:
    """
    Translate one turn into an Ollama message.

    Returns None for a turn without parts.
    """
    if not content.parts:
        return None

    text = ""
    images = []
    tool_calls = []

    for part in content.parts:
        if part.text is not None:
            text += part.text
        elif part.inline_data is not None:
            blob = part.inline_data
            if (blob.mime_type or "").startswith("image/") and blob.data:
                images.append(blob.data)
        elif part.function_call is not None:
            tool_calls.append(function_call_to_ollama(part.function_call))
        elif part.function_response is not None:
            name = part.function_response.name or "unknown"
            result = json.dumps(part.function_response.response)
            text += f"Function {name} returned: {result}"

    return OllamaMessage(
        role=map_role(content.role),
        content=text,
        images=images or None,
        tool_calls=tool_calls or None,
    )


def contents_to_messages(contents: Sequence[Content]) -> list[OllamaMessage]:
    """Translate a conversation, dropping empty turns."""
    messages = []
    for content in contents:
        message = content_to_message(content)
        if message is not None:
            messages.append(message)
    return messages


def usage_from_ollama(response: OllamaChatResponse) -> Optional[UsageMetadata]:
    """Usage is reported only when the server sent an eval count."""
    if response.eval_count is None:
        return None
    prompt_tokens = response.prompt_eval_count or 0
    return UsageMetadata(
        prompt_token_count=prompt_tokens,
        candidates_token_count=response.eval_count,
        total_token_count=prompt_tokens + response.eval_count,
    )


def response_from_ollama(response: OllamaChatResponse) -> GenerateContentResponse:
    """Translate one Ollama chat response (or stream record) into a GenerateContentResponse."""
    parts = []
    if response.message.content:
        parts.append(Part.from_text(response.message.content))

    for call in response.message.tool_calls or ():
        part = tool_call_to_part(call)
        if part is not None:
            parts.append(part)

    candidate = Candidate(
        content=Content(role="model", parts=tuple(parts)),
        finish_reason=FinishReason.STOP if response.done else None,
        index=0,
    )
    return GenerateContentResponse(
        candidates=(candidate,),
        usage_metadata=usage_from_ollama(response),
    )

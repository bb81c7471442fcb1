"""
Tool bridging between provider-agnostic declarations and Ollama tool schemas.

Outbound, Ollama accepts exactly one function per tool entry, so each Tool
group contributes its first FunctionDeclaration only. Inbound, the JSON
arguments string of each tool call is decoded back into a mapping; a call
with unparseable arguments still becomes a function-call Part (with empty
args) rather than failing the whole response.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any, Optional

from ollama_bridge.adapters.wire import (
    OllamaFunctionCall,
    OllamaFunctionSpec,
    OllamaTool,
    OllamaToolCall,
)
from ollama_bridge.schema import FunctionCall, Part, Tool

logger = logging.getLogger(__name__)


def tools_to_ollama(tools: Optional[Sequence[Tool]]) -> list[OllamaTool]:
    """Convert Tool groups into Ollama tool entries (first declaration each)."""
    converted = []
    for tool in tools or ():
        declarations = tool.function_declarations or ()
        if not declarations:
            continue
        first = declarations[0]
        if len(declarations) > 1:
            logger.debug(
                f"Tool group has {len(declarations)} declarations; "
                f"only '{first.name}' is sent to Ollama"
            )
        converted.append(
            OllamaTool(
                function=OllamaFunctionSpec(
                    name=first.name,
                    description=first.description,
                    parameters=first.parameters,
                )
            )
        )
    return converted


def function_call_to_ollama(call: FunctionCall) -> OllamaToolCall:
    """Encode a function call as an Ollama tool call with JSON arguments."""
    return OllamaToolCall(
        function=OllamaFunctionCall(
            name=call.name,
            arguments=json.dumps(call.args or {}),
        )
    )


def parse_arguments(raw: str) -> dict[str, Any]:
    """
    Decode a tool call's JSON arguments.

    Returns an empty mapping when the text is blank, malformed, or does not
    decode to a JSON object.
    """
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError:
        logger.warning(f"Could not decode tool call arguments: {raw[:200]}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning(f"Tool call arguments are not a JSON object: {raw[:200]}")
        return {}
    return parsed


def tool_call_to_part(call: OllamaToolCall) -> Optional[Part]:
    """Convert an Ollama tool call to a function-call Part (None if not a function)."""
    if call.type != "function":
        return None
    return Part.from_function_call(call.function.name, parse_arguments(call.function.arguments))

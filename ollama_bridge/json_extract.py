"""
Structured output recovery for servers without schema enforcement.

Ollama's format="json" only nudges the model; reasoning models still leak
<think> blocks, wrap answers in markdown fences, or pad them with prose.
This module recovers a JSON object from such text with an ordered chain of
independent strategies, first success wins:

1. Strip <think>...</think> blocks (repeatedly, case-insensitive)
2. Prefer whatever follows the last </think>
3. Unwrap a ```json fenced block
4. Parse the whole text when it looks like one object
5. Match a single flat object with at least one quoted key
6. Parse from the first "{" to the last "}"
7. Look for a "next_speaker" object in the untouched raw text
8. Synthesize a value shaped like the schema

extract_json() never raises: step 8 always produces something.
"""

import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

THINK_BLOCK_PATTERN = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
THINK_CLOSE_PATTERN = re.compile(r"</think>", re.IGNORECASE)
CODE_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
FLAT_OBJECT_PATTERN = re.compile(r'\{[^{}]*"[^"]+"\s*:[^{}]*\}')
NEXT_SPEAKER_PATTERN = re.compile(r'\{[^<]*?"next_speaker"[^<]*?\}')

FALLBACK_TEXT_LIMIT = 100

MODEL_TURN_PHRASES = ("model should speak next", "model continues", "'model'")
USER_TURN_PHRASES = ("user should speak next", "question to user", "'user'")


# ─────────────────────────────────────────────────────────────────────
# TEXT CLEANUP (steps 1-3)
# ─────────────────────────────────────────────────────────────────────

def strip_think_blocks(text: str) -> str:
    """Remove every <think>...</think> region, repeating until none remain."""
    cleaned = text.strip()
    while True:
        stripped = THINK_BLOCK_PATTERN.sub("", cleaned).strip()
        if stripped == cleaned:
            return cleaned
        cleaned = stripped


def text_after_last_think(text: str) -> Optional[str]:
    """
    Return the trimmed text after the last </think>, if any.

    Handles a reasoning block whose opening tag is missing or malformed.
    """
    if not THINK_CLOSE_PATTERN.search(text):
        return None
    tail = THINK_CLOSE_PATTERN.split(text)[-1].strip()
    return tail or None


def unwrap_code_fence(text: str) -> str:
    """Keep only the interior of the first ``` fenced block, if present."""
    match = CODE_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text


def prepare_candidate_text(raw_text: str) -> str:
    """Apply the cleanup steps to produce the working text for parsing."""
    working = strip_think_blocks(raw_text)
    after_think = text_after_last_think(raw_text)
    if after_think is not None:
        working = after_think
    return unwrap_code_fence(working)


# ─────────────────────────────────────────────────────────────────────
# PARSE STRATEGIES (steps 4-7)
# ─────────────────────────────────────────────────────────────────────

def _loads_object(text: str) -> Optional[dict]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_whole_object(text: str) -> Optional[dict]:
    """Direct parse when the text is bracketed like a single object."""
    text = text.strip()
    if text and text.startswith("{") and text.endswith("}"):
        return _loads_object(text)
    return None


def parse_flat_object(text: str) -> Optional[dict]:
    """Parse the first non-nested object that has a quoted key."""
    match = FLAT_OBJECT_PATTERN.search(text)
    if match:
        return _loads_object(match.group(0))
    return None


def parse_outer_braces(text: str) -> Optional[dict]:
    """Parse the span from the first '{' to the last '}'."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return _loads_object(text[start:end + 1])
    return None


def parse_next_speaker_object(text: str) -> Optional[dict]:
    """Find an object carrying a "next_speaker" key (run on the raw text)."""
    match = NEXT_SPEAKER_PATTERN.search(text)
    if match:
        return _loads_object(match.group(0))
    return None


Strategy = Callable[[str], Optional[dict]]

# Order matters - first success wins
WORKING_TEXT_STRATEGIES: list[Strategy] = [
    parse_whole_object,
    parse_flat_object,
    parse_outer_braces,
]
RAW_TEXT_STRATEGIES: list[Strategy] = [
    parse_next_speaker_object,
]


# ─────────────────────────────────────────────────────────────────────
# SCHEMA FALLBACK (step 8)
# ─────────────────────────────────────────────────────────────────────

def _infer_next_speaker(text: str) -> dict:
    lower_text = text.lower()
    if any(phrase in lower_text for phrase in MODEL_TURN_PHRASES):
        return {"next_speaker": "model", "reasoning": "Model indicated it should continue"}
    if any(phrase in lower_text for phrase in USER_TURN_PHRASES):
        return {"next_speaker": "user", "reasoning": "Response indicates user should speak next"}
    return {
        "next_speaker": "user",
        "reasoning": "Unable to parse response, defaulting to user turn",
    }


def _placeholder_for(spec: Any, text: str) -> Any:
    if not isinstance(spec, Mapping):
        return None
    kind = spec.get("type")
    if kind == "string":
        choices = spec.get("enum")
        if isinstance(choices, list) and choices:
            return choices[0]
        return text[:FALLBACK_TEXT_LIMIT]
    if kind == "boolean":
        lower_text = text.lower()
        return "true" in lower_text or "yes" in lower_text
    return None


def fallback_from_schema(schema: Optional[Mapping[str, Any]], text: str) -> dict:
    """Synthesize a value shaped like the schema's top-level properties."""
    properties = schema.get("properties") if isinstance(schema, Mapping) else None
    if not isinstance(properties, Mapping):
        return {"response": text}

    if set(properties) == {"next_speaker", "reasoning"}:
        return _infer_next_speaker(text)

    return {key: _placeholder_for(spec, text) for key, spec in properties.items()}


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────

def extract_json(raw_text: str, schema: Optional[Mapping[str, Any]] = None) -> Any:
    """
    Recover a JSON object from free-form model output.

    Args:
        raw_text: The model's response text, untouched
        schema: JSON-Schema-like mapping used only for the fallback

    Returns:
        The first successfully parsed object, or a schema-shaped fallback
    """
    working = prepare_candidate_text(raw_text)
    for strategy in WORKING_TEXT_STRATEGIES:
        result = strategy(working)
        if result is not None:
            logger.debug(f"extract_json: parsed with {strategy.__name__}")
            return result

    for strategy in RAW_TEXT_STRATEGIES:
        result = strategy(raw_text)
        if result is not None:
            logger.debug(f"extract_json: parsed with {strategy.__name__}")
            return result

    logger.warning(f"extract_json: Could not parse, using schema fallback: {raw_text[:200]}")
    return fallback_from_schema(schema, raw_text)

"""Shared test fixtures for ollama-bridge tests."""

import json

import pytest

from ollama_bridge.adapters.ollama import OllamaAdapter


# ─────────────────────────────────────────────────────────────────────
# MOCK DATA
# ─────────────────────────────────────────────────────────────────────

MOCK_HOST = "http://ollama.test:11434"
MOCK_MODEL = "qwen3:8b"
MOCK_EMBEDDING_MODEL = "nomic-embed-text"

MOCK_CHAT_URL = f"{MOCK_HOST}/api/chat"
MOCK_EMBED_URL = f"{MOCK_HOST}/api/embed"
MOCK_TAGS_URL = f"{MOCK_HOST}/api/tags"

MOCK_CHAT_RESPONSE = {
    "model": MOCK_MODEL,
    "created_at": "2025-01-01T00:00:00Z",
    "message": {"role": "assistant", "content": "The capital of France is Paris."},
    "done": True,
    "total_duration": 123456789,
    "prompt_eval_count": 10,
    "eval_count": 8,
}

MOCK_TOOL_CALL_RESPONSE = {
    "model": MOCK_MODEL,
    "message": {
        "role": "assistant",
        "content": "",
        "tool_calls": [
            {"function": {"name": "get_weather", "arguments": {"city": "Paris"}}},
        ],
    },
    "done": True,
}

MOCK_STREAM_RECORDS = [
    {"model": MOCK_MODEL, "message": {"role": "assistant", "content": "The"}, "done": False},
    {"model": MOCK_MODEL, "message": {"role": "assistant", "content": " sky"}, "done": False},
    {
        "model": MOCK_MODEL,
        "message": {"role": "assistant", "content": ""},
        "done": True,
        "prompt_eval_count": 12,
        "eval_count": 3,
    },
]

MOCK_TAGS_RESPONSE = {
    "models": [
        {"name": "qwen3:8b", "size": 5200000000},
        {"name": "nomic-embed-text:latest", "size": 274000000},
    ]
}


def ndjson(records: list) -> bytes:
    """Encode records as a newline-delimited JSON body."""
    return "".join(json.dumps(r) + "\n" for r in records).encode()


def user_request(text: str = "What is the capital of France?", **extra) -> dict:
    """Build a single-turn request mapping in the camelCase JSON form."""
    return {"contents": [{"role": "user", "parts": [{"text": text}]}], **extra}


# ─────────────────────────────────────────────────────────────────────
# FIXTURES
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def adapter():
    """Adapter against the mock host, without the background probe."""
    return OllamaAdapter(
        host=MOCK_HOST,
        model=MOCK_MODEL,
        check_connection=False,
        connect_retry_attempts=1,
    )


@pytest.fixture
def warnings_sink():
    """Collect connectivity warnings instead of logging them."""
    messages: list[str] = []
    return messages

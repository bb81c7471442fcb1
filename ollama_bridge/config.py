"""
Configuration constants and Pydantic settings for ollama-bridge.
"""

import os
from typing import Optional

from pydantic import BaseModel


# ─────────────────────────────────────────────────────────────────────
# DEFAULTS
# ─────────────────────────────────────────────────────────────────────

DEFAULT_HOST: str = "http://localhost:11434"
DEFAULT_MODEL: str = "llama3.2"
DEFAULT_EMBEDDING_MODEL: str = "nomic-embed-text"
DEFAULT_TIMEOUT_SECONDS: int = 300  # 5 minutes, local models can be slow


# ─────────────────────────────────────────────────────────────────────
# INTERNAL CONSTANTS
# ─────────────────────────────────────────────────────────────────────

CONNECTIVITY_TIMEOUT_SECONDS: float = 5.0
CHARS_PER_TOKEN: int = 4
THINK_OPEN_TAG: str = "<think>"
THINK_CLOSE_TAG: str = "</think>"


# ─────────────────────────────────────────────────────────────────────
# ENVIRONMENT LOADING
# ─────────────────────────────────────────────────────────────────────

def get_host() -> str:
    """
    Get the Ollama base URL from environment or default.

    Set OLLAMA_HOST in .env (default: http://localhost:11434).
    """
    value = os.environ.get("OLLAMA_HOST", "").strip()
    return value or DEFAULT_HOST


def get_model() -> str:
    """Get the generation model name (OLLAMA_MODEL)."""
    value = os.environ.get("OLLAMA_MODEL", "").strip()
    return value or DEFAULT_MODEL


def get_embedding_model() -> str:
    """Get the embedding model name (OLLAMA_EMBEDDING_MODEL)."""
    value = os.environ.get("OLLAMA_EMBEDDING_MODEL", "").strip()
    return value or DEFAULT_EMBEDDING_MODEL


def get_api_key() -> Optional[str]:
    """
    Get the optional bearer token for Ollama instances behind an auth proxy.

    Returns None when OLLAMA_API_KEY is unset or blank.
    """
    value = os.environ.get("OLLAMA_API_KEY", "").strip()
    return value or None


def get_timeout_seconds() -> int:
    """
    Get request timeout for generation calls.

    Set OLLAMA_TIMEOUT in .env (default: 300).
    """
    try:
        return int(os.environ.get("OLLAMA_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS)))
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS


def get_connect_retry_attempts() -> int:
    """
    Get max attempts for the startup connectivity probe.

    Set OLLAMA_CONNECT_RETRY_ATTEMPTS in .env (default: 2).
    """
    try:
        return max(1, int(os.environ.get("OLLAMA_CONNECT_RETRY_ATTEMPTS", "2")))
    except ValueError:
        return 2


# ─────────────────────────────────────────────────────────────────────
# DATA MODELS
# ─────────────────────────────────────────────────────────────────────

class OllamaSettings(BaseModel):
    """Static configuration held by an adapter for its lifetime."""
    host: str = DEFAULT_HOST
    model: str = DEFAULT_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    api_key: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "OllamaSettings":
        """Build settings from OLLAMA_* environment variables."""
        return cls(
            host=get_host(),
            model=get_model(),
            embedding_model=get_embedding_model(),
            api_key=get_api_key(),
            timeout_seconds=get_timeout_seconds(),
        )

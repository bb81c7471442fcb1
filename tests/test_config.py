"""Tests for ollama_bridge.config module."""

import pytest

from ollama_bridge import config
from ollama_bridge.config import OllamaSettings

OLLAMA_ENV_VARS = (
    "OLLAMA_HOST",
    "OLLAMA_MODEL",
    "OLLAMA_EMBEDDING_MODEL",
    "OLLAMA_API_KEY",
    "OLLAMA_TIMEOUT",
    "OLLAMA_CONNECT_RETRY_ATTEMPTS",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove OLLAMA_* variables so defaults apply."""
    for name in OLLAMA_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestDefaults:
    """Getters fall back to module defaults."""

    def test_defaults(self, clean_env):
        assert config.get_host() == "http://localhost:11434"
        assert config.get_model() == "llama3.2"
        assert config.get_embedding_model() == "nomic-embed-text"
        assert config.get_api_key() is None
        assert config.get_timeout_seconds() == 300
        assert config.get_connect_retry_attempts() == 2

    def test_blank_values_use_defaults(self, clean_env):
        clean_env.setenv("OLLAMA_HOST", "  ")
        clean_env.setenv("OLLAMA_API_KEY", "")
        assert config.get_host() == config.DEFAULT_HOST
        assert config.get_api_key() is None


class TestOverrides:
    def test_env_values(self, clean_env):
        clean_env.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        clean_env.setenv("OLLAMA_MODEL", "qwen3:8b")
        clean_env.setenv("OLLAMA_EMBEDDING_MODEL", "mxbai-embed-large")
        clean_env.setenv("OLLAMA_API_KEY", "secret")
        clean_env.setenv("OLLAMA_TIMEOUT", "60")
        clean_env.setenv("OLLAMA_CONNECT_RETRY_ATTEMPTS", "4")

        settings = OllamaSettings.from_env()
        assert settings.host == "http://gpu-box:11434"
        assert settings.model == "qwen3:8b"
        assert settings.embedding_model == "mxbai-embed-large"
        assert settings.api_key == "secret"
        assert settings.timeout_seconds == 60
        assert config.get_connect_retry_attempts() == 4

    def test_invalid_numbers_fall_back(self, clean_env):
        clean_env.setenv("OLLAMA_TIMEOUT", "soon")
        clean_env.setenv("OLLAMA_CONNECT_RETRY_ATTEMPTS", "many")
        assert config.get_timeout_seconds() == config.DEFAULT_TIMEOUT_SECONDS
        assert config.get_connect_retry_attempts() == 2

    def test_retry_attempts_at_least_one(self, clean_env):
        clean_env.setenv("OLLAMA_CONNECT_RETRY_ATTEMPTS", "0")
        assert config.get_connect_retry_attempts() == 1

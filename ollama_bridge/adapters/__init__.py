"""
Adapters for content-generation backends.

Provider-agnostic architecture: Protocol defines WHAT, implementations define HOW.
"""

from .base import ContentGenerator
from .ollama import (
    OllamaAdapter,
    OllamaAPIError,
    OllamaEmptyResponseError,
    OllamaError,
    OllamaStreamError,
)

__all__ = [
    "ContentGenerator",
    "OllamaAdapter",
    "OllamaAPIError",
    "OllamaEmptyResponseError",
    "OllamaError",
    "OllamaStreamError",
]

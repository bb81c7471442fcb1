"""
ollama-bridge - Gemini-style content generation on top of a local Ollama server.
"""

__version__ = "0.1.0"

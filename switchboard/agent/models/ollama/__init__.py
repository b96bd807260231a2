"""Ollama chat adapter."""

from ._model import OllamaAdapter

__all__ = ["OllamaAdapter"]

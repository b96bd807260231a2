"""OpenAI Chat Completions adapter."""

from ._model import OpenAIAdapter

__all__ = ["OpenAIAdapter"]

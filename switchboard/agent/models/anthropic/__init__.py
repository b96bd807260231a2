"""Anthropic Messages API adapter."""

from ._model import AnthropicAdapter

__all__ = ["AnthropicAdapter"]

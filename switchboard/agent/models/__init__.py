"""
Provider adapters

- OpenAIAdapter: OpenAI Chat Completions（及 OpenAI 兼容 API，如 DeepSeek、xAI、Gemini）
- AnthropicAdapter: Anthropic Messages API
- OllamaAdapter: Ollama /api/chat（NDJSON 流）
"""

from .anthropic import AnthropicAdapter
from .ollama import OllamaAdapter
from .openai import OpenAIAdapter

__all__ = ["AnthropicAdapter", "OllamaAdapter", "OpenAIAdapter"]

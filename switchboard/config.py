"""Configuration: a YAML file describing providers, validated with pydantic.

Example ``switchboard.yaml``::

    default_model: openai:gpt-4o-mini
    max_delegation_depth: 4
    providers:
      - key: openai
        adapter: openai
        api_key_env: OPENAI_API_KEY
        models: [gpt-4o, gpt-4o-mini]
      - key: deepseek
        adapter: openai
        base_url: https://api.deepseek.com/v1
        api_key_env: DEEPSEEK_API_KEY
      - key: anthropic
        adapter: anthropic
        api_key_env: ANTHROPIC_API_KEY
      - key: xai
        adapter: openai
        base_url: https://api.x.ai/v1
        api_key_env: XAI_API_KEY
      - key: ollama
        adapter: ollama
        models: [llama3.2]
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from switchboard.agent.context import DEFAULT_MAX_DELEGATION_DEPTH
from switchboard.agent.message import Model
from switchboard.agent.model import ProviderAdapter
from switchboard.agent.models import AnthropicAdapter, OllamaAdapter, OpenAIAdapter
from switchboard.agent.registry import ProviderRegistry
from switchboard.agent.transport import DEFAULT_TIMEOUT
from switchboard.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SWITCHBOARD_CONFIG"
DEFAULT_CONFIG_PATH = Path("switchboard.yaml")

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "anthropic": AnthropicAdapter,
    "ollama": OllamaAdapter,
}


class ProviderConfig(BaseModel):
    """One provider entry; ``key`` becomes the provider name used in models."""

    key: str
    adapter: Literal["openai", "anthropic", "ollama"]
    api_key: str | None = None
    api_key_env: str | None = None
    base_url: str | None = None
    models: list[str] | None = None
    timeout: float = DEFAULT_TIMEOUT

    def resolve_api_key(self) -> str | None:
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            value = os.environ.get(self.api_key_env)
            if not value:
                logger.warning(f"Environment variable {self.api_key_env} for provider '{self.key}' is not set")
            return value
        return None


class SwitchboardConfig(BaseModel):
    providers: list[ProviderConfig] = Field(default_factory=list)
    default_model: str | None = None
    max_delegation_depth: int = Field(default=DEFAULT_MAX_DELEGATION_DEPTH, ge=0)
    max_tool_rounds: int | None = Field(default=None, ge=1)

    def model(self, value: str | None = None) -> Model:
        """Parse ``provider:model`` (defaults to ``default_model``)."""
        value = value or self.default_model
        if not value:
            raise ConfigError("No model given and no default_model configured")
        try:
            return Model.parse(value)
        except ValueError as e:
            raise ConfigError(str(e)) from e


def load_config(path: str | Path | None = None) -> SwitchboardConfig:
    """Load and validate a YAML config file.

    The path defaults to ``$SWITCHBOARD_CONFIG``, then ``./switchboard.yaml``.
    """
    config_path = Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    try:
        return SwitchboardConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e


def build_adapter(provider: ProviderConfig) -> ProviderAdapter:
    adapter_cls = ADAPTERS[provider.adapter]
    return adapter_cls(
        provider.resolve_api_key(),
        provider=provider.key,
        models=provider.models,
        base_url=provider.base_url,
        timeout=provider.timeout,
    )


def build_registry(config: SwitchboardConfig) -> ProviderRegistry:
    """Create one adapter per provider entry, registered in file order."""
    registry = ProviderRegistry()
    for provider in config.providers:
        registry.register(build_adapter(provider))
    return registry

"""Unit tests for YAML configuration loading and registry construction."""

import textwrap

import pytest

from switchboard.__main__ import main
from switchboard.agent.message import ChatRequest, Model
from switchboard.agent.models import AnthropicAdapter, OllamaAdapter, OpenAIAdapter
from switchboard.config import CONFIG_ENV_VAR, ProviderConfig, SwitchboardConfig, build_registry, load_config
from switchboard.errors import ConfigError

CONFIG = """
default_model: openai:gpt-4o-mini
max_delegation_depth: 3
providers:
  - key: openai
    adapter: openai
    api_key_env: TEST_OPENAI_KEY
    models: [gpt-4o, gpt-4o-mini]
  - key: deepseek
    adapter: openai
    api_key: sk-deepseek
    base_url: https://api.deepseek.test/v1
  - key: anthropic
    adapter: anthropic
    api_key: sk-ant
    timeout: 30
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "switchboard.yaml"
    path.write_text(textwrap.dedent(CONFIG), encoding="utf-8")
    return path


class TestLoadConfig:
    def test_load(self, config_file):
        config = load_config(config_file)

        assert [p.key for p in config.providers] == ["openai", "deepseek", "anthropic"]
        assert config.max_delegation_depth == 3
        assert config.max_tool_rounds is None
        assert config.providers[2].timeout == 30
        assert config.model() == Model(id="gpt-4o-mini", provider="openai")
        assert config.model("deepseek:deepseek-chat") == Model(id="deepseek-chat", provider="deepseek")

    def test_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))
        assert len(load_config().providers) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("providers: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    @pytest.mark.parametrize(
        "content",
        [
            "providers:\n  - key: x\n    adapter: gemini\n",
            "max_delegation_depth: -1\n",
            "max_tool_rounds: 0\n",
        ],
    )
    def test_invalid_values(self, tmp_path, content):
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid config"):
            load_config(path)

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        config = load_config(path)
        assert config.providers == []
        with pytest.raises(ConfigError):
            config.model()

    def test_malformed_model(self, config_file):
        with pytest.raises(ConfigError):
            load_config(config_file).model("gpt-4o")


class TestApiKey:
    def test_literal_key_wins(self, monkeypatch):
        monkeypatch.setenv("TEST_KEY", "from-env")
        provider = ProviderConfig(key="p", adapter="openai", api_key="literal", api_key_env="TEST_KEY")
        assert provider.resolve_api_key() == "literal"

    def test_env_key(self, monkeypatch):
        monkeypatch.setenv("TEST_KEY", "from-env")
        provider = ProviderConfig(key="p", adapter="openai", api_key_env="TEST_KEY")
        assert provider.resolve_api_key() == "from-env"

    def test_unset_env_key(self, monkeypatch, caplog):
        monkeypatch.delenv("TEST_KEY", raising=False)
        provider = ProviderConfig(key="p", adapter="openai", api_key_env="TEST_KEY")
        assert provider.resolve_api_key() is None
        assert "TEST_KEY" in caplog.text


class TestBuildRegistry:
    def test_adapters_in_file_order(self, config_file, monkeypatch):
        monkeypatch.setenv("TEST_OPENAI_KEY", "sk-openai")
        registry = build_registry(load_config(config_file))
        openai, deepseek, anthropic = registry.adapters

        assert isinstance(openai, OpenAIAdapter)
        assert openai.api_key == "sk-openai"
        assert openai.models == frozenset({"gpt-4o", "gpt-4o-mini"})
        assert isinstance(deepseek, OpenAIAdapter)
        assert deepseek.provider == "deepseek"
        assert deepseek.transport.base_url.startswith("https://api.deepseek.test/v1")
        assert isinstance(anthropic, AnthropicAdapter)

    def test_provider_key_routes_requests(self, config_file):
        registry = build_registry(load_config(config_file))
        request = ChatRequest(model=Model(id="deepseek-chat", provider="deepseek"), messages=[])
        assert registry.dispatch(request).provider == "deepseek"

    def test_ollama_entry(self):
        config = SwitchboardConfig(providers=[ProviderConfig(key="local", adapter="ollama", base_url="http://gpu-box:11434")])
        (adapter,) = build_registry(config).adapters

        assert isinstance(adapter, OllamaAdapter)
        assert adapter.provider == "local"
        assert adapter.api_key is None
        assert adapter.transport.base_url.startswith("http://gpu-box:11434")


class TestMain:
    def test_missing_config_exits_with_error(self, tmp_path, capsys):
        code = main(["--config", str(tmp_path / "absent.yaml"), "hello"])
        assert code == 1
        assert "ConfigError" in capsys.readouterr().out

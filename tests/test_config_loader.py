"""
Tests for configuration loading.

Tests cover:
- Environment variable interpolation
- YAML parsing into AppConfig sections
- Validation warnings
- Environment-only configuration
"""

import pytest

from extendr.config import config_from_env, get_config
from extendr.config_loader import (
    load_app_config,
    reset_config_cache,
    resolve_env_vars,
    validate_app_config,
)
from extendr.models import AppConfig, ProviderConfig, ProviderType

FULL_CONFIG = """
version: "2.0"
provider:
  type: Claude
  api_key: ${TEST_CLAUDE_KEY}
  model: ${TEST_MODEL:-claude-3-5-haiku-20241022}
  max_tokens: 4096
  temperature: 0.2
agent:
  max_iterations: 10
  max_consecutive_errors: 2
  provider_timeout: 90
  serialize_same_path: "false"
  system_prompt_short: yes
sandbox:
  root: /tmp/ext
  build_command: ""
  log_limit: 200
server:
  port: 9000
  workspaces_root: /tmp/workspaces
logging:
  level: debug
langfuse:
  public_key: pk-lf-1
  secret_key: sk-lf-1
  host: http://langfuse:3000
"""


@pytest.fixture(autouse=True)
def fresh_cache():
    reset_config_cache()
    yield
    reset_config_cache()


@pytest.fixture
def config_file(tmp_path):
    def write(text):
        path = tmp_path / "config.yaml"
        path.write_text(text)
        return str(path)

    return write


class TestResolveEnvVars:
    """Tests for ${VAR} interpolation."""

    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("EXT_TEST_VAR", "value")
        assert resolve_env_vars("a-${EXT_TEST_VAR}-b") == "a-value-b"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("EXT_TEST_VAR", raising=False)
        assert resolve_env_vars("${EXT_TEST_VAR:-fallback}") == "fallback"

    def test_unset_without_default_is_empty(self, monkeypatch):
        monkeypatch.delenv("EXT_TEST_VAR", raising=False)
        assert resolve_env_vars("${EXT_TEST_VAR}") == ""


class TestLoadAppConfig:
    """Tests for load_app_config."""

    def test_full_config(self, config_file, monkeypatch):
        monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-ant-test")
        monkeypatch.delenv("TEST_MODEL", raising=False)

        config = load_app_config(config_file(FULL_CONFIG))

        assert config.version == "2.0"
        assert config.provider.type == ProviderType.CLAUDE
        assert config.provider.api_key == "sk-ant-test"
        assert config.provider.model == "claude-3-5-haiku-20241022"
        assert config.provider.max_tokens == 4096
        assert config.provider.temperature == 0.2
        assert config.agent.max_iterations == 10
        assert config.agent.max_consecutive_errors == 2
        assert config.agent.provider_timeout == 90.0
        assert config.agent.serialize_same_path is False
        assert config.agent.system_prompt_short is True
        assert config.sandbox.build_command == ""
        assert config.sandbox.install_command == "npm install"
        assert config.sandbox.log_limit == 200
        assert config.server.port == 9000
        assert config.server.workspaces_root == "/tmp/workspaces"
        assert config.log_level == "DEBUG"
        assert config.langfuse.is_configured

    def test_defaults_for_missing_sections(self, config_file):
        config = load_app_config(config_file("version: '1.0'\n"))
        assert config.provider.type == ProviderType.OPENAI
        assert config.agent.max_iterations == 20
        assert config.agent.max_consecutive_errors == 3
        assert config.langfuse.is_configured is False

    def test_cached_until_reload(self, config_file):
        path = config_file("agent:\n  max_iterations: 5\n")
        first = load_app_config(path)
        assert load_app_config(path) is first

        config_file("agent:\n  max_iterations: 7\n")
        assert load_app_config(path, reload=True).agent.max_iterations == 7

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_app_config(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, config_file):
        with pytest.raises(ValueError, match="empty"):
            load_app_config(config_file(""))

    def test_non_mapping(self, config_file):
        with pytest.raises(ValueError, match="mapping"):
            load_app_config(config_file("- a\n- b\n"))

    def test_unknown_provider(self, config_file):
        with pytest.raises(ValueError, match="Unknown provider type"):
            load_app_config(config_file("provider:\n  type: mystery\n"))

    def test_config_path_env(self, config_file, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", config_file("server:\n  port: 8123\n"))
        assert get_config().server.port == 8123


class TestValidateAppConfig:
    """Tests for validate_app_config."""

    def test_missing_key_warning(self):
        warnings = validate_app_config(AppConfig())
        assert warnings == ["provider 'openai': missing api_key"]

    def test_gemini_proxy_counts_as_configured(self):
        config = AppConfig(
            provider=ProviderConfig(type=ProviderType.GEMINI, proxy_url="https://proxy")
        )
        assert validate_app_config(config) == []

    def test_bad_budgets(self):
        config = AppConfig(provider=ProviderConfig(api_key="k"))
        config.agent.max_iterations = 0
        config.agent.provider_timeout = -1
        warnings = validate_app_config(config)
        assert "agent.max_iterations must be positive" in warnings
        assert "agent timeouts must not be negative" in warnings


class TestConfigFromEnv:
    """Tests for environment-only configuration."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("EXTENDR_PROVIDER", "Gemini")
        monkeypatch.setenv("EXTENDR_API_KEY", "AIza-test")
        monkeypatch.setenv("EXTENDR_MAX_ITERATIONS", "12")
        monkeypatch.setenv("EXTENDR_SHORT_PROMPT", "true")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        config = config_from_env()

        assert config.provider.type == ProviderType.GEMINI
        assert config.provider.api_key == "AIza-test"
        assert config.agent.max_iterations == 12
        assert config.agent.system_prompt_short is True
        assert config.log_level == "WARNING"

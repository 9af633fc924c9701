"""Tests for the interactive CLI helpers."""

from unittest.mock import Mock, patch

import pytest

from extendr import interactive
from extendr.agent.loop import AgentService
from extendr.agent.messages import ProviderResponse
from extendr.interactive import InteractiveCLI, _signal_handler, build_service
from extendr.models import AppConfig, ProviderConfig, ProviderType

from conftest import ScriptedProvider, calls, tool_call

ENV_KEYS = (
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "CLAUDE_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENROUTER_API_KEY",
    "DEEPSEEK_API_KEY",
)


@pytest.fixture
def no_env_keys(monkeypatch):
    for name in ENV_KEYS:
        monkeypatch.delenv(name, raising=False)


class TestBuildService:
    """Tests for build_service."""

    def test_configured_provider(self, no_env_keys):
        config = AppConfig(provider=ProviderConfig(type=ProviderType.DEEPSEEK, api_key="sk-x"))
        service = build_service(config, show_progress=False)
        assert service.provider.provider_type == ProviderType.DEEPSEEK
        assert service.on_tool_call is None

    def test_explicit_provider_reads_vendor_key(self, no_env_keys, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
        service = build_service(AppConfig(), provider="claude", model="claude-3-haiku-20240307")

        assert service.provider.provider_type == ProviderType.CLAUDE
        assert service.provider.config.api_key == "sk-ant-env"
        assert service.provider.model == "claude-3-haiku-20240307"
        assert service.on_tool_call is not None

    def test_explicit_provider_without_key(self, no_env_keys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-other")
        assert build_service(AppConfig(), provider="gemini") is None

    def test_falls_back_to_first_env_key(self, no_env_keys, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-env")
        service = build_service(AppConfig(provider=ProviderConfig(type=ProviderType.CLAUDE)))
        assert service.provider.provider_type == ProviderType.OPENROUTER

    def test_no_keys_anywhere(self, no_env_keys):
        assert build_service(AppConfig()) is None


class TestInteractiveCLI:
    """Tests for InteractiveCLI."""

    def test_process_query_records_text_turns(self, sandbox, capsys):
        provider = ScriptedProvider(
            [
                calls(tool_call("t1", "ext_write_file", file_path="manifest.json", content="{}")),
                ProviderResponse.text("Manifest ready."),
            ]
        )
        cli = InteractiveCLI(AgentService(provider), sandbox)

        cli.process_query("Start a project")

        out = capsys.readouterr().out
        assert "Manifest ready." in out
        assert "Modified: manifest.json" in out
        assert [m.content for m in cli.history] == ["Start a project", "Manifest ready.\n\nChanged 1 file."]
        assert interactive._active_service is None

    def test_process_query_clears_leftover_cancel(self, sandbox, capsys):
        service = AgentService(ScriptedProvider([ProviderResponse.text("Still here.")]))
        service.cancel()
        cli = InteractiveCLI(service, sandbox)

        cli.process_query("Hello")

        assert "Still here." in capsys.readouterr().out
        assert cli.history[-1].content == "Still here."

    def test_run_handles_commands(self, sandbox, capsys):
        cli = InteractiveCLI(AgentService(ScriptedProvider([])), sandbox)
        with patch("builtins.input", side_effect=["/tools", "/files", "/bogus", "/quit"]):
            cli.run()

        out = capsys.readouterr().out
        assert "ext_write_file" in out
        assert "Workspace is empty." in out
        assert "Unknown command: /bogus" in out
        assert "Goodbye!" in out


class TestSignalHandler:
    """Tests for Ctrl+C handling."""

    def test_idle_interrupt_raises(self, monkeypatch):
        monkeypatch.setattr(interactive, "_active_service", None)
        with pytest.raises(KeyboardInterrupt):
            _signal_handler(2, None)

    def test_first_cancels_second_exits(self, monkeypatch):
        service = Mock()
        monkeypatch.setattr(interactive, "_active_service", service)
        interactive._cancel_requested.clear()

        _signal_handler(2, None)
        service.cancel.assert_called_once()

        with pytest.raises(SystemExit) as exc_info:
            _signal_handler(2, None)
        assert exc_info.value.code == 130
        interactive._cancel_requested.clear()

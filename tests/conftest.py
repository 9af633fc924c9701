"""
Pytest configuration and fixtures for Extendr tests.
"""

import threading
from typing import Callable, Optional, Union

import pytest

from extendr.agent.messages import Message, ProviderResponse, ToolCall
from extendr.models import ProviderConfig, ProviderType
from extendr.providers.base import BaseProvider
from extendr.sandbox import CommandResult, SandboxSession
from extendr.tools.definitions import ToolDefinition


class FakeSandbox(SandboxSession):
    """In-memory sandbox that records every operation."""

    def __init__(self, files: Optional[dict[str, str]] = None):
        super().__init__()
        self.disk: dict[str, str] = dict(files or {})
        self.set_files(dict(self.disk))
        self.fail_writes: set[str] = set()
        self.commands: list[tuple[str, list[str]]] = []
        self.command_result = CommandResult(exit_code=0, output="ok")
        self.builds: list[tuple[dict, bool]] = []
        self.build_error: Optional[Exception] = None
        self.running = False
        self.logs: list[str] = []
        self.terminal: list[str] = []
        self._lock = threading.Lock()

    def write_file(self, path: str, content: str) -> None:
        if path in self.fail_writes:
            raise PermissionError(f"Cannot write {path}")
        with self._lock:
            self.disk[path] = content

    def read_file(self, path: str) -> str:
        if path not in self.disk:
            raise FileNotFoundError(path)
        return self.disk[path]

    def delete_file(self, path: str) -> None:
        with self._lock:
            if path not in self.disk:
                raise FileNotFoundError(path)
            del self.disk[path]

    def list_files(self, directory: Optional[str] = None) -> list[str]:
        return sorted(self.disk)

    def run_command(self, command: str, args: list[str]) -> CommandResult:
        self.commands.append((command, list(args)))
        return self.command_result

    def build(self, files: dict[str, str], install_deps: bool = True) -> None:
        self.builds.append((dict(files), install_deps))
        if self.build_error is not None:
            raise self.build_error
        self.running = True

    def stop(self) -> None:
        self.running = False

    def is_running(self) -> bool:
        return self.running

    def get_logs(self) -> list[str]:
        return list(self.logs)

    def clear_logs(self) -> None:
        self.logs.clear()

    def write_to_terminal(self, text: str) -> None:
        self.terminal.append(text)


Script = Union[ProviderResponse, Callable[[list[Message]], ProviderResponse]]


class ScriptedProvider(BaseProvider):
    """Provider that replays scripted responses and records every request."""

    provider_type = ProviderType.OPENAI
    display_name = "Scripted"
    default_model = "scripted-model"
    models = ("scripted-model",)

    def __init__(self, responses: list[Script], repeat_last: bool = False):
        super().__init__(ProviderConfig(type=ProviderType.OPENAI, api_key="test-key"))
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.requests: list[list[Message]] = []
        self.system_prompts: list[str] = []
        self.tool_counts: list[int] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def _send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str,
    ) -> ProviderResponse:
        self.requests.append(list(messages))
        self.system_prompts.append(system_prompt)
        self.tool_counts.append(len(tools))
        if not self.responses:
            raise AssertionError("ScriptedProvider ran out of responses")
        script = self.responses[0] if self.repeat_last and len(self.responses) == 1 else self.responses.pop(0)
        if callable(script):
            return script(messages)
        return script


def tool_call(call_id: str, name: str, **arguments) -> ToolCall:
    return ToolCall(id=call_id, name=name, arguments=arguments)


def calls(*tool_calls: ToolCall, text: str = "") -> ProviderResponse:
    return ProviderResponse.with_tool_calls(list(tool_calls), content=text)


@pytest.fixture
def sandbox():
    """Booted in-memory sandbox."""
    box = FakeSandbox()
    box.boot()
    yield box
    box.teardown()


@pytest.fixture
def scripted():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider

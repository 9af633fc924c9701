"""Tests for the conversation data model."""

import dataclasses

import pytest

from extendr.agent.messages import (
    AgentState,
    AIServiceResult,
    Message,
    ProviderResponse,
    ResponseType,
    ResultAccumulator,
    Role,
    ToolCall,
    ToolResult,
)


class TestToolResult:
    """Tests for ToolResult."""

    def test_failure_echoes_call(self):
        """A failed result keeps the call id and name and prefixes the error."""
        call = ToolCall(id="t1", name="ext_read_file", arguments={"file_path": "a.js"})
        result = ToolResult.failure(call, "File not found: a.js")

        assert result.tool_call_id == "t1"
        assert result.name == "ext_read_file"
        assert result.success is False
        assert result.error == "File not found: a.js"
        assert result.content == "Error: File not found: a.js"
        assert result.affected_path is None

    def test_results_are_frozen(self):
        """Tool results cannot be mutated after creation."""
        result = ToolResult(tool_call_id="t1", name="x", content="ok", success=True)
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.success = False


class TestMessage:
    """Tests for Message constructors."""

    def test_user_and_system(self):
        assert Message.user("hi").role == Role.USER
        assert Message.system("rules").role == Role.SYSTEM

    def test_assistant_with_tool_calls(self):
        """Assistant turns keep accompanying text alongside tool calls."""
        call = ToolCall(id="t1", name="ext_list_files")
        message = Message.assistant("Let me look.", [call])

        assert message.role == Role.ASSISTANT
        assert message.content == "Let me look."
        assert message.tool_calls == (call,)

    def test_tool_message_carries_result(self):
        result = ToolResult(tool_call_id="t1", name="ext_list_files", content="a.js", success=True)
        message = Message.tool(result)

        assert message.role == Role.TOOL
        assert message.content == "a.js"
        assert message.tool_result is result


class TestProviderResponse:
    """Tests for ProviderResponse variants."""

    def test_text(self):
        response = ProviderResponse.text("Done")
        assert response.type == ResponseType.TEXT
        assert response.content == "Done"

    def test_tool_calls(self):
        calls = [ToolCall(id="t1", name="ext_list_files")]
        response = ProviderResponse.with_tool_calls(calls, content="Checking")
        assert response.type == ResponseType.TOOL_CALLS
        assert response.tool_calls == tuple(calls)
        assert response.content == "Checking"

    def test_empty_tool_calls_become_text(self):
        """An empty call list is treated as a text response."""
        response = ProviderResponse.with_tool_calls([], content="Nothing to do")
        assert response.type == ResponseType.TEXT
        assert response.content == "Nothing to do"

    def test_failure_has_default_message(self):
        response = ProviderResponse.failure("")
        assert response.type == ResponseType.ERROR
        assert response.error == "Unknown provider error"


class TestAgentState:
    """Tests for AgentState."""

    @pytest.mark.parametrize(
        "state,terminal",
        [
            (AgentState.RUNNING, False),
            (AgentState.AWAITING_PROVIDER, False),
            (AgentState.EXECUTING_TOOLS, False),
            (AgentState.DONE, True),
            (AgentState.CANCELLED, True),
            (AgentState.ERROR, True),
        ],
    )
    def test_is_terminal(self, state, terminal):
        assert state.is_terminal is terminal


class TestResultAccumulator:
    """Tests for ResultAccumulator and AIServiceResult."""

    def test_add_modified_deduplicates_in_order(self):
        acc = ResultAccumulator()
        acc.add_modified(["a.js", "b.js"])
        acc.add_modified(["b.js", "c.js", "a.js"])
        assert acc.modified_files == ["a.js", "b.js", "c.js"]

    def test_freeze_produces_immutable_result(self):
        acc = ResultAccumulator()
        call = ToolCall(id="t1", name="ext_write_file", arguments={"file_path": "a.js"})
        acc.tool_calls.append(call)
        acc.errors.append("boom")

        result = acc.freeze("All done", AgentState.DONE, 2)

        assert isinstance(result, AIServiceResult)
        assert result.tool_calls == (call,)
        assert result.errors == ("boom",)
        assert result.iterations == 2
        acc.errors.append("later")
        assert result.errors == ("boom",)

    def test_to_dict(self):
        call = ToolCall(id="t1", name="ext_write_file", arguments={"file_path": "a.js"})
        result = AIServiceResult(
            response="ok",
            tool_calls=(call,),
            tool_results=(
                ToolResult(tool_call_id="t1", name="ext_write_file", content="done", success=True),
            ),
            modified_files=("a.js",),
            build_triggered=True,
            state=AgentState.DONE,
            iterations=2,
        )
        data = result.to_dict()

        assert data["state"] == "done"
        assert data["tool_calls"] == [
            {"id": "t1", "name": "ext_write_file", "arguments": {"file_path": "a.js"}}
        ]
        assert data["tool_results"][0]["success"] is True
        assert data["modified_files"] == ["a.js"]
        assert data["build_triggered"] is True

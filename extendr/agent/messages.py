"""
Conversation data model shared by the agent loop, providers, and executor.

Messages, tool calls, and tool results are immutable once created; the
conversation history is an append-only list of ``Message`` values.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    """Author of a conversation turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class AgentState(str, Enum):
    """Lifecycle states of a single ``chat`` invocation."""

    RUNNING = "running"
    AWAITING_PROVIDER = "awaiting_provider"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentState.DONE, AgentState.CANCELLED, AgentState.ERROR)


@dataclass(frozen=True)
class ToolCall:
    """A model-issued request to run one tool."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of executing one ``ToolCall``.

    ``content`` is what the model reads back. ``affected_path`` and
    ``build_triggered`` carry the side effects in structured form so callers
    never have to parse ``content``.
    """

    tool_call_id: str
    name: str
    content: str
    success: bool
    error: Optional[str] = None
    affected_path: Optional[str] = None
    build_triggered: bool = False

    @classmethod
    def failure(cls, call: ToolCall, error: str) -> "ToolResult":
        """Build a failed result for ``call``."""
        return cls(
            tool_call_id=call.id,
            name=call.name,
            content=f"Error: {error}",
            success=False,
            error=error,
        )


@dataclass(frozen=True)
class Message:
    """A single turn in the conversation history."""

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_result: Optional[ToolResult] = None

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def assistant(
        cls, content: str = "", tool_calls: Optional[list[ToolCall]] = None
    ) -> "Message":
        return cls(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls or ()),
        )

    @classmethod
    def tool(cls, result: ToolResult) -> "Message":
        return cls(role=Role.TOOL, content=result.content, tool_result=result)


class ResponseType(str, Enum):
    """Normalized provider response variants."""

    TEXT = "text"
    TOOL_CALLS = "tool_calls"
    ERROR = "error"


@dataclass(frozen=True)
class ProviderResponse:
    """
    Vendor-neutral provider response.

    Exactly one of the variants is meaningful: ``content`` for TEXT,
    ``tool_calls`` (plus optional accompanying ``content``) for TOOL_CALLS,
    ``error`` for ERROR.
    """

    type: ResponseType
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    error: Optional[str] = None
    usage: Optional[dict[str, int]] = None

    @classmethod
    def text(cls, content: str, usage: Optional[dict] = None) -> "ProviderResponse":
        return cls(type=ResponseType.TEXT, content=content or "", usage=usage)

    @classmethod
    def with_tool_calls(
        cls,
        tool_calls: list[ToolCall],
        content: str = "",
        usage: Optional[dict] = None,
    ) -> "ProviderResponse":
        # An empty call list carries nothing to execute; treat it as text.
        if not tool_calls:
            return cls.text(content, usage=usage)
        return cls(
            type=ResponseType.TOOL_CALLS,
            content=content or "",
            tool_calls=tuple(tool_calls),
            usage=usage,
        )

    @classmethod
    def failure(cls, error: str) -> "ProviderResponse":
        return cls(type=ResponseType.ERROR, error=error or "Unknown provider error")


@dataclass(frozen=True)
class AIServiceResult:
    """Everything one ``chat`` invocation produced, frozen at termination."""

    response: str
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()
    modified_files: tuple[str, ...] = ()
    build_triggered: bool = False
    errors: tuple[str, ...] = ()
    state: AgentState = AgentState.DONE
    iterations: int = 0

    def to_dict(self) -> dict:
        """Serialize for JSON output."""
        return {
            "response": self.response,
            "state": self.state.value,
            "iterations": self.iterations,
            "tool_calls": [
                {"id": c.id, "name": c.name, "arguments": c.arguments}
                for c in self.tool_calls
            ],
            "tool_results": [
                {
                    "tool_call_id": r.tool_call_id,
                    "name": r.name,
                    "success": r.success,
                    "content": r.content,
                    "error": r.error,
                }
                for r in self.tool_results
            ],
            "modified_files": list(self.modified_files),
            "build_triggered": self.build_triggered,
            "errors": list(self.errors),
        }


@dataclass
class ResultAccumulator:
    """Mutable builder behind ``AIServiceResult``."""

    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    modified_files: list[str] = field(default_factory=list)
    build_triggered: bool = False
    errors: list[str] = field(default_factory=list)

    def add_modified(self, paths: list[str]) -> None:
        for path in paths:
            if path not in self.modified_files:
                self.modified_files.append(path)

    def freeze(self, response: str, state: AgentState, iterations: int) -> AIServiceResult:
        return AIServiceResult(
            response=response,
            tool_calls=tuple(self.tool_calls),
            tool_results=tuple(self.tool_results),
            modified_files=tuple(self.modified_files),
            build_triggered=self.build_triggered,
            errors=tuple(self.errors),
            state=state,
            iterations=iterations,
        )

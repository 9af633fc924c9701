"""
Conversation model and cancellation primitives for the agent.

The orchestration loop itself lives in ``extendr.agent.loop``.
"""

from .cancellation import CancellationToken, OperationCancelled, OperationTimedOut
from .messages import (
    AgentState,
    AIServiceResult,
    Message,
    ProviderResponse,
    ResponseType,
    Role,
    ToolCall,
    ToolResult,
)

__all__ = [
    "CancellationToken",
    "OperationCancelled",
    "OperationTimedOut",
    "AgentState",
    "AIServiceResult",
    "Message",
    "ProviderResponse",
    "ResponseType",
    "Role",
    "ToolCall",
    "ToolResult",
]

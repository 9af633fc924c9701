"""
Extendr - an agent that builds Chrome extensions with tool-calling LLMs

This package provides:
- Provider adapters for Gemini, OpenAI, Claude, DeepSeek, and OpenRouter
- A closed catalogue of sandbox tools and a concurrent tool executor
- The orchestration loop that drives provider and tool turns
- Interactive CLI and HTTP API front ends
"""

__version__ = "0.1.0"

from .agent.loop import AgentService, create_agent_service, create_service_from_env
from .agent.messages import AIServiceResult, AgentState, Message
from .sandbox import LocalSandbox, SandboxSession

__all__ = [
    "AgentService",
    "AIServiceResult",
    "AgentState",
    "Message",
    "LocalSandbox",
    "SandboxSession",
    "create_agent_service",
    "create_service_from_env",
]

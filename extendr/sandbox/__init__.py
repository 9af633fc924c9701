"""Sandbox sessions the agent runs its tools against."""

from .session import CommandResult, SandboxSession
from .local import LocalSandbox, SandboxPathError

__all__ = [
    "CommandResult",
    "SandboxSession",
    "LocalSandbox",
    "SandboxPathError",
]

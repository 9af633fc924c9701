"""
Tool Registry - one handler per tool name.

Handlers register themselves with ``@ToolRegistry.register(ToolName.X)``.
``verify()`` fails loudly when any ``ToolName`` member has no handler, so a
tool cannot be added to the catalogue without an implementation.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from .definitions import ToolName

if TYPE_CHECKING:
    from ..sandbox import SandboxSession


class ToolError(Exception):
    """Expected handler failure (bad argument, missing file, failed command)."""


@dataclass(frozen=True)
class ToolOutput:
    """What a handler hands back on success."""

    content: str
    affected_path: Optional[str] = None
    build_triggered: bool = False


Handler = Callable[[dict, "SandboxSession"], ToolOutput]


class ToolRegistry:
    """Central registry mapping each tool to its handler."""

    _handlers: dict[ToolName, Handler] = {}

    @classmethod
    def register(cls, name: ToolName) -> Callable[[Handler], Handler]:
        """Decorator registering ``handler`` for ``name``."""

        def decorator(handler: Handler) -> Handler:
            if name in cls._handlers:
                raise ValueError(f"Handler already registered for {name.value}")
            cls._handlers[name] = handler
            return handler

        return decorator

    @classmethod
    def get(cls, name: ToolName) -> Optional[Handler]:
        """Get the handler for a tool."""
        return cls._handlers.get(name)

    @classmethod
    def all_handlers(cls) -> dict[ToolName, Handler]:
        """Get a copy of all registered handlers."""
        return cls._handlers.copy()

    @classmethod
    def missing(cls) -> list[ToolName]:
        """Tools in the catalogue without a handler."""
        return [name for name in ToolName if name not in cls._handlers]

    @classmethod
    def verify(cls) -> None:
        """Raise if any tool lacks a handler."""
        missing = cls.missing()
        if missing:
            names = ", ".join(name.value for name in missing)
            raise RuntimeError(f"No handler registered for: {names}")

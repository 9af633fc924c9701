"""
Extendr Tools Package

The closed set of ext_* tools the model may call, their handlers, and the
executor that runs a batch of calls against a sandbox session.
"""

from .definitions import ToolDefinition, ToolName, TOOL_DEFINITIONS, get_tool_definition
from .registry import ToolError, ToolOutput, ToolRegistry

__all__ = [
    "ToolDefinition",
    "ToolName",
    "TOOL_DEFINITIONS",
    "get_tool_definition",
    "ToolError",
    "ToolOutput",
    "ToolRegistry",
]

"""
Tool catalogue for the extension agent.

Every tool the model may call is a member of ``ToolName``; ``TOOL_DEFINITIONS``
holds the description and JSON parameter schema for each one. The catalogue
is built once at import time and never mutated.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ToolName(str, Enum):
    """Closed set of tools understood by the executor."""

    WRITE_FILE = "ext_write_file"
    READ_FILE = "ext_read_file"
    DELETE_FILE = "ext_delete_file"
    RENAME_FILE = "ext_rename_file"
    LIST_FILES = "ext_list_files"
    SEARCH_FILES = "ext_search_files"
    REPLACE_LINES = "ext_replace_lines"
    DOWNLOAD_FILE = "ext_download_file"
    ADD_DEPENDENCY = "ext_add_dependency"
    REMOVE_DEPENDENCY = "ext_remove_dependency"
    BUILD_PREVIEW = "ext_build_preview"
    STOP_PREVIEW = "ext_stop_preview"
    RUN_COMMAND = "ext_run_command"
    READ_CONSOLE_LOGS = "ext_read_console_logs"
    GET_PROJECT_INFO = "ext_get_project_info"

    @classmethod
    def parse(cls, name: str) -> Optional["ToolName"]:
        """Return the member for ``name``, or None for unknown tools."""
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class ToolDefinition:
    """Name, description, and JSON schema of one tool."""

    name: ToolName
    description: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def schema(self) -> dict:
        """Mutable copy of the JSON parameter schema."""
        return _thaw(self.parameters)

    def to_openai(self) -> dict:
        """OpenAI-style function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": self.schema(),
            },
        }


def _schema(properties: dict, required: Optional[list[str]] = None) -> dict:
    return {
        "type": "object",
        "properties": properties,
        "required": required or [],
    }


def _string(description: str) -> dict:
    return {"type": "string", "description": description}


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


_DEFINITIONS = [
    ToolDefinition(
        name=ToolName.WRITE_FILE,
        description=(
            "Create or update a file in the extension sandbox.\n\n"
            "Use ext_list_files first to see what already exists; do not recreate "
            "scaffolding files (package.json, manifest.json, configs) unless they "
            "need changes.\n\n"
            "Common extension files:\n"
            "- manifest.json - Extension configuration (permissions, scripts, UI)\n"
            "- src/App.tsx - Popup UI component\n"
            "- src/background/index.ts - Background service worker\n"
            "- src/content/index.ts - Content script (DOM access)\n"
            "- options.html / sidepanel.html - Extra entry pages\n\n"
            "Always use forward slashes. When adding background or content scripts, "
            "also update the vite.config.ts entry points."
        ),
        parameters=_schema(
            {
                "file_path": _string(
                    'Path to the file relative to project root (e.g., "src/background/index.ts")'
                ),
                "content": _string("The complete file content to write"),
            },
            ["file_path", "content"],
        ),
    ),
    ToolDefinition(
        name=ToolName.READ_FILE,
        description=(
            "Read the contents of a file from the sandbox. Optionally restrict "
            "the output to a 1-indexed, inclusive line range."
        ),
        parameters=_schema(
            {
                "file_path": _string(
                    'Path to the file to read (e.g., "src/App.tsx", "manifest.json")'
                ),
                "start_line": {
                    "type": "integer",
                    "description": "Optional: Start reading from this line number (1-indexed)",
                },
                "end_line": {
                    "type": "integer",
                    "description": "Optional: Stop reading at this line number (inclusive)",
                },
            },
            ["file_path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.DELETE_FILE,
        description="Delete a file from the sandbox.",
        parameters=_schema({"file_path": _string("Path to the file to delete")}, ["file_path"]),
    ),
    ToolDefinition(
        name=ToolName.RENAME_FILE,
        description="Rename or move a file to a new location.",
        parameters=_schema(
            {
                "old_path": _string("Current path of the file"),
                "new_path": _string("New path for the file"),
            },
            ["old_path", "new_path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.LIST_FILES,
        description=(
            "List all files in the sandbox or in a specific directory. "
            "Returns one file path per line."
        ),
        parameters=_schema(
            {
                "directory": _string(
                    'Directory to list (optional, defaults to root). Use "." for root, '
                    '"src" for the src folder.'
                ),
            }
        ),
    ),
    ToolDefinition(
        name=ToolName.SEARCH_FILES,
        description=(
            "Search for text or regex patterns across files in the sandbox. "
            "Returns each matching file with its match count."
        ),
        parameters=_schema(
            {
                "query": _string(
                    'Text or regex pattern to search for (e.g., "chrome.runtime", "sendMessage")'
                ),
                "include_pattern": _string(
                    'Glob pattern to include files (e.g., "*.tsx", "src/**", "*.ts")'
                ),
                "exclude_pattern": _string(
                    'Glob pattern to exclude files (e.g., "node_modules/**", "*.test.ts")'
                ),
                "case_sensitive": {
                    "type": "boolean",
                    "description": "Whether search is case-sensitive (default: false)",
                },
            },
            ["query"],
        ),
    ),
    ToolDefinition(
        name=ToolName.REPLACE_LINES,
        description=(
            "Surgical code edit: replace specific text in a file.\n\n"
            "Prefer this over ext_write_file for small changes to existing files "
            "(adding a manifest permission, an entry point, an import). The search "
            "string must match exactly once in the file."
        ),
        parameters=_schema(
            {
                "file_path": _string("Path to the file to modify"),
                "search": _string("The exact text/code to find (must be unique in the file)"),
                "replace": _string("The new text/code to replace it with"),
            },
            ["file_path", "search", "replace"],
        ),
    ),
    ToolDefinition(
        name=ToolName.DOWNLOAD_FILE,
        description=(
            "Download a text resource from a URL and save it to the project "
            "(JSON, CSS, SVG, filter lists, source files)."
        ),
        parameters=_schema(
            {
                "url": _string("The URL to download from (must be publicly accessible)"),
                "file_path": _string(
                    'Where to save the file in the project (e.g., "icons/icon.svg")'
                ),
            },
            ["url", "file_path"],
        ),
    ),
    ToolDefinition(
        name=ToolName.ADD_DEPENDENCY,
        description=(
            "Install an npm package the extension needs "
            "(e.g. @types/chrome, dexie, webextension-polyfill, zustand)."
        ),
        parameters=_schema(
            {
                "package": _string(
                    'Package name with optional version (e.g., "@types/chrome", "dexie@latest")'
                ),
            },
            ["package"],
        ),
    ),
    ToolDefinition(
        name=ToolName.REMOVE_DEPENDENCY,
        description="Uninstall an npm package from the project.",
        parameters=_schema({"package": _string("Package name to remove")}, ["package"]),
    ),
    ToolDefinition(
        name=ToolName.BUILD_PREVIEW,
        description=(
            "Build the extension and start the preview server. Call this after "
            "creating or updating files.\n\n"
            "This mounts all files, installs dependencies if requested, runs the "
            "build, and starts the preview."
        ),
        parameters=_schema(
            {
                "install_deps": {
                    "type": "boolean",
                    "description": (
                        "Whether to run npm install (default: true for first build, "
                        "false for rebuilds)"
                    ),
                },
            }
        ),
    ),
    ToolDefinition(
        name=ToolName.STOP_PREVIEW,
        description="Stop the running preview server.",
        parameters=_schema({}),
    ),
    ToolDefinition(
        name=ToolName.RUN_COMMAND,
        description=(
            "Execute a shell command in the sandbox (custom build steps, "
            "directory creation, inspection). Long-running servers should use "
            "ext_build_preview instead."
        ),
        parameters=_schema(
            {
                "command": _string(
                    'The command to run (e.g., "npm install lodash", "mkdir -p icons")'
                ),
            },
            ["command"],
        ),
    ),
    ToolDefinition(
        name=ToolName.READ_CONSOLE_LOGS,
        description=(
            "Read recent console logs from the preview. Useful for debugging "
            "JavaScript errors, Chrome API errors, and build failures."
        ),
        parameters=_schema(
            {
                "filter": _string(
                    'Optional filter to search logs (e.g., "error", "chrome", "undefined")'
                ),
            }
        ),
    ),
    ToolDefinition(
        name=ToolName.GET_PROJECT_INFO,
        description=(
            "Get information about the current project: file list, manifest.json "
            "details, package.json dependencies, and whether the preview is running."
        ),
        parameters=_schema({}),
    ),
]

TOOL_DEFINITIONS: tuple[ToolDefinition, ...] = tuple(
    ToolDefinition(name=d.name, description=d.description, parameters=_freeze(d.parameters))
    for d in _DEFINITIONS
)

_BY_NAME: Mapping[ToolName, ToolDefinition] = MappingProxyType(
    {d.name: d for d in TOOL_DEFINITIONS}
)


def get_tool_definition(name: ToolName) -> ToolDefinition:
    """Look up the definition for a tool."""
    return _BY_NAME[name]


def get_tool_names() -> list[str]:
    """Wire names of all tools, in catalogue order."""
    return [d.name.value for d in TOOL_DEFINITIONS]


def get_tools_summary() -> str:
    """One-line-per-tool summary for prompts and CLI listings."""
    lines = []
    for definition in TOOL_DEFINITIONS:
        first_line = definition.description.split("\n", 1)[0]
        lines.append(f"- {definition.name.value}: {first_line}")
    return "\n".join(lines)


if set(_BY_NAME) != set(ToolName):
    missing = sorted(n.value for n in set(ToolName) - set(_BY_NAME))
    raise RuntimeError(f"Tool catalogue is missing definitions for: {missing}")

"""
Tool handlers.

Each handler takes the model-supplied arguments and the sandbox session,
performs the side effect, and returns a ``ToolOutput``. Expected failures
raise ``ToolError``; the executor turns every exception into a failed
``ToolResult``.

File-mutating handlers write to the sandbox first and update the local
mirror only after the sandbox write succeeded.
"""

import fnmatch
import json
import logging
import re
import shlex
from typing import Any, Optional

import requests

from ..sandbox import SandboxSession
from .definitions import ToolName
from .registry import ToolError, ToolOutput, ToolRegistry

logger = logging.getLogger(__name__)

# Console log lines returned by ext_read_console_logs
MAX_LOG_LINES = 50

# Download limits for ext_download_file
DOWNLOAD_TIMEOUT = 30
MAX_DOWNLOAD_BYTES = 5_000_000

# Terminal echo markers
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
MAGENTA = "\x1b[35m"
CYAN = "\x1b[36m"
RED = "\x1b[31m"
RESET = "\x1b[0m"


def _str_arg(args: dict, key: str, required: bool = True, allow_empty: bool = False) -> Optional[str]:
    value = args.get(key)
    if value is None:
        if required:
            raise ToolError(f"Missing required argument: {key}")
        return None
    if not isinstance(value, str):
        raise ToolError(f"Argument '{key}' must be a string")
    if not value.strip() and not allow_empty:
        if required:
            raise ToolError(f"Argument '{key}' must not be empty")
        return None
    return value


def _int_arg(args: dict, key: str) -> Optional[int]:
    value = args.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ToolError(f"Argument '{key}' must be an integer")


def _bool_arg(args: dict, key: str, default: bool) -> bool:
    value = args.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no")
    return bool(value)


def _normalize_path(path: str) -> str:
    return path.strip().replace("\\", "/").lstrip("/").removeprefix("./")


def _read_current(session: SandboxSession, path: str) -> str:
    files = session.get_files()
    if path in files:
        return files[path]
    try:
        return session.read_file(path)
    except FileNotFoundError:
        raise ToolError(f"File not found: {path}")


def _matches_glob(path: str, pattern: str) -> bool:
    pattern = pattern.strip()
    if fnmatch.fnmatch(path, pattern):
        return True
    # Patterns without a directory part match on the file name, like "*.ts"
    if "/" not in pattern:
        return fnmatch.fnmatch(path.rsplit("/", 1)[-1], pattern)
    # "src/**" should match everything under src/
    if pattern.endswith("/**"):
        return path.startswith(pattern[:-2])
    return False


@ToolRegistry.register(ToolName.WRITE_FILE)
def write_file(args: dict, session: SandboxSession) -> ToolOutput:
    path = _normalize_path(_str_arg(args, "file_path"))
    content = _str_arg(args, "content", allow_empty=True)

    session.write_file(path, content)
    session.update_file(path, content)
    session.write_to_terminal(f"{GREEN}✓{RESET} Created/updated: {path}\n")
    return ToolOutput(
        content=f"Successfully wrote {path} ({len(content)} bytes)",
        affected_path=path,
    )


@ToolRegistry.register(ToolName.READ_FILE)
def read_file(args: dict, session: SandboxSession) -> ToolOutput:
    path = _normalize_path(_str_arg(args, "file_path"))
    content = _read_current(session, path)

    start = _int_arg(args, "start_line")
    end = _int_arg(args, "end_line")
    if start is None and end is None:
        return ToolOutput(content=content)

    lines = content.splitlines()
    if not lines:
        return ToolOutput(content=f"{path} is empty")
    first = max(start or 1, 1)
    last = min(end or len(lines), len(lines))
    if first > last:
        raise ToolError(
            f"Invalid line range {start}-{end} for {path} ({len(lines)} lines)"
        )
    excerpt = "\n".join(lines[first - 1:last])
    return ToolOutput(content=f"Lines {first}-{last} of {len(lines)} in {path}:\n{excerpt}")


@ToolRegistry.register(ToolName.DELETE_FILE)
def delete_file(args: dict, session: SandboxSession) -> ToolOutput:
    path = _normalize_path(_str_arg(args, "file_path"))
    try:
        session.delete_file(path)
    except FileNotFoundError:
        raise ToolError(f"File not found: {path}")
    session.update_file(path, None)
    session.write_to_terminal(f"{YELLOW}✗{RESET} Deleted: {path}\n")
    return ToolOutput(content=f"Successfully deleted {path}", affected_path=path)


@ToolRegistry.register(ToolName.RENAME_FILE)
def rename_file(args: dict, session: SandboxSession) -> ToolOutput:
    old_path = _normalize_path(_str_arg(args, "old_path"))
    new_path = _normalize_path(_str_arg(args, "new_path"))
    if old_path == new_path:
        raise ToolError("old_path and new_path are the same")

    content = _read_current(session, old_path)
    session.write_file(new_path, content)
    session.update_file(new_path, content)
    note = ""
    try:
        session.delete_file(old_path)
    except FileNotFoundError:
        # Only the mirror still held the old file
        logger.warning("Rename source %s was already gone from the sandbox", old_path)
        note = f" ({old_path} was already missing from the sandbox)"
    session.update_file(old_path, None)
    session.write_to_terminal(f"{BLUE}→{RESET} Renamed: {old_path} → {new_path}\n")
    return ToolOutput(
        content=f"Successfully renamed {old_path} to {new_path}{note}",
        affected_path=new_path,
    )


@ToolRegistry.register(ToolName.LIST_FILES)
def list_files(args: dict, session: SandboxSession) -> ToolOutput:
    directory = _str_arg(args, "directory", required=False)
    paths = sorted(session.get_files())
    if directory and directory.strip() not in (".", "/"):
        prefix = _normalize_path(directory).rstrip("/") + "/"
        paths = [p for p in paths if p.startswith(prefix)]
    return ToolOutput(content="\n".join(paths) if paths else "No files found")


@ToolRegistry.register(ToolName.SEARCH_FILES)
def search_files(args: dict, session: SandboxSession) -> ToolOutput:
    query = _str_arg(args, "query")
    include = _str_arg(args, "include_pattern", required=False)
    exclude = _str_arg(args, "exclude_pattern", required=False)
    flags = 0 if _bool_arg(args, "case_sensitive", False) else re.IGNORECASE
    try:
        pattern = re.compile(query, flags)
    except re.error as e:
        raise ToolError(f"Invalid search pattern '{query}': {e}")

    results = []
    for path, content in sorted(session.get_files().items()):
        if include and not _matches_glob(path, include):
            continue
        if exclude and _matches_glob(path, exclude):
            continue
        count = len(pattern.findall(content))
        if count:
            results.append(f"{path}: {count} match(es)")

    if not results:
        return ToolOutput(content=f'No matches found for "{query}"')
    return ToolOutput(content="\n".join(results))


@ToolRegistry.register(ToolName.REPLACE_LINES)
def replace_lines(args: dict, session: SandboxSession) -> ToolOutput:
    path = _normalize_path(_str_arg(args, "file_path"))
    search = _str_arg(args, "search", allow_empty=False)
    replace = _str_arg(args, "replace", allow_empty=True)

    content = _read_current(session, path)
    occurrences = content.count(search)
    if occurrences == 0:
        raise ToolError(f"Search text not found in {path}")
    if occurrences > 1:
        raise ToolError(
            f"Search text matches {occurrences} times in {path}; "
            "provide a longer snippet that is unique"
        )

    updated = content.replace(search, replace, 1)
    session.write_file(path, updated)
    session.update_file(path, updated)
    session.write_to_terminal(f"{GREEN}✎{RESET} Edited: {path}\n")
    return ToolOutput(content=f"Successfully edited {path}", affected_path=path)


@ToolRegistry.register(ToolName.DOWNLOAD_FILE)
def download_file(args: dict, session: SandboxSession) -> ToolOutput:
    url = _str_arg(args, "url").strip()
    path = _normalize_path(_str_arg(args, "file_path"))
    if not url.startswith(("http://", "https://")):
        raise ToolError(f"Unsupported URL scheme: {url}")

    session.write_to_terminal(f"{CYAN}⇣{RESET} Downloading {url}...\n")
    try:
        response = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise ToolError(f"Download failed: {e}")

    if len(response.content) > MAX_DOWNLOAD_BYTES:
        raise ToolError(f"Download too large ({len(response.content)} bytes)")
    try:
        content = response.content.decode(response.encoding or "utf-8")
    except (UnicodeDecodeError, LookupError):
        raise ToolError("Only text content can be downloaded")

    session.write_file(path, content)
    session.update_file(path, content)
    return ToolOutput(
        content=f"Successfully downloaded {url} to {path} ({len(content)} bytes)",
        affected_path=path,
    )


def _npm(session: SandboxSession, verb: str, package: str) -> None:
    result = session.run_command("npm", [verb, package])
    if not result.ok:
        raise ToolError(f"npm {verb} failed: {result.output}")


@ToolRegistry.register(ToolName.ADD_DEPENDENCY)
def add_dependency(args: dict, session: SandboxSession) -> ToolOutput:
    package = _str_arg(args, "package").strip()
    session.write_to_terminal(f"{CYAN}📦{RESET} Installing {package}...\n")
    _npm(session, "install", package)
    return ToolOutput(content=f"Successfully installed {package}")


@ToolRegistry.register(ToolName.REMOVE_DEPENDENCY)
def remove_dependency(args: dict, session: SandboxSession) -> ToolOutput:
    package = _str_arg(args, "package").strip()
    session.write_to_terminal(f"{YELLOW}📦{RESET} Removing {package}...\n")
    _npm(session, "uninstall", package)
    return ToolOutput(content=f"Successfully removed {package}")


@ToolRegistry.register(ToolName.BUILD_PREVIEW)
def build_preview(args: dict, session: SandboxSession) -> ToolOutput:
    install_deps = _bool_arg(args, "install_deps", True)
    session.write_to_terminal(f"{MAGENTA}🔨{RESET} Building extension preview...\n")
    session.build(session.get_files(), install_deps=install_deps)
    status = "Preview is running." if session.is_running() else "Preview is not running."
    return ToolOutput(content=f"Build completed. {status}", build_triggered=True)


@ToolRegistry.register(ToolName.STOP_PREVIEW)
def stop_preview(args: dict, session: SandboxSession) -> ToolOutput:
    session.stop()
    session.write_to_terminal(f"{RED}⏹{RESET} Preview stopped\n")
    return ToolOutput(content="Preview server stopped")


@ToolRegistry.register(ToolName.RUN_COMMAND)
def run_command(args: dict, session: SandboxSession) -> ToolOutput:
    command = _str_arg(args, "command")
    try:
        parts = shlex.split(command)
    except ValueError as e:
        raise ToolError(f"Could not parse command: {e}")

    session.write_to_terminal(f"$ {command}\n")
    result = session.run_command(parts[0], parts[1:])
    return ToolOutput(content=f"Exit code: {result.exit_code}\n{result.output}")


@ToolRegistry.register(ToolName.READ_CONSOLE_LOGS)
def read_console_logs(args: dict, session: SandboxSession) -> ToolOutput:
    log_filter = _str_arg(args, "filter", required=False)
    logs = session.get_logs()
    if log_filter:
        try:
            pattern = re.compile(log_filter, re.IGNORECASE)
        except re.error:
            pattern = re.compile(re.escape(log_filter), re.IGNORECASE)
        logs = [line for line in logs if pattern.search(line)]

    if not logs:
        return ToolOutput(content="No logs found")
    return ToolOutput(content="\n".join(logs[-MAX_LOG_LINES:]))


def _parse_json_file(files: dict[str, str], path: str) -> Optional[Any]:
    if path not in files:
        return None
    try:
        return json.loads(files[path])
    except json.JSONDecodeError:
        return {"error": "Invalid JSON"}


@ToolRegistry.register(ToolName.GET_PROJECT_INFO)
def get_project_info(args: dict, session: SandboxSession) -> ToolOutput:
    files = session.get_files()
    package = _parse_json_file(files, "package.json")
    dependencies = None
    if isinstance(package, dict) and "error" not in package:
        dependencies = {
            "dependencies": package.get("dependencies", {}),
            "devDependencies": package.get("devDependencies", {}),
        }

    info = {
        "fileCount": len(files),
        "files": sorted(files),
        "manifest": _parse_json_file(files, "manifest.json"),
        "packageDependencies": dependencies,
        "isRunning": session.is_running(),
    }
    return ToolOutput(content=json.dumps(info, indent=2))


ToolRegistry.verify()

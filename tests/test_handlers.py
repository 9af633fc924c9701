"""Tests for the individual tool handlers, run through execute_tool."""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from extendr.agent.messages import ToolCall
from extendr.sandbox import CommandResult
from extendr.tools.executor import execute_tool

from conftest import FakeSandbox


def run(session, name, **arguments):
    return execute_tool(ToolCall(id="t1", name=name, arguments=arguments), session)


@pytest.fixture
def project():
    box = FakeSandbox(
        {
            "manifest.json": json.dumps({"manifest_version": 3, "name": "Demo"}),
            "package.json": json.dumps(
                {"dependencies": {"dexie": "^4.0.0"}, "devDependencies": {"vite": "^5.0.0"}}
            ),
            "src/App.tsx": "export function App() {\n  return <div>Hello</div>;\n}\n",
            "src/background/index.ts": "chrome.runtime.onInstalled.addListener(() => {});\n",
        }
    )
    box.boot()
    return box


class TestWriteFile:
    """Tests for ext_write_file."""

    def test_writes_disk_and_mirror(self, sandbox):
        result = run(sandbox, "ext_write_file", file_path="popup/popup.html", content="<html></html>")

        assert result.success
        assert result.content == "Successfully wrote popup/popup.html (13 bytes)"
        assert result.affected_path == "popup/popup.html"
        assert sandbox.disk["popup/popup.html"] == "<html></html>"
        assert sandbox.get_files()["popup/popup.html"] == "<html></html>"
        assert any("popup/popup.html" in line for line in sandbox.terminal)

    def test_normalizes_path(self, sandbox):
        result = run(sandbox, "ext_write_file", file_path="./src\\main.ts", content="")
        assert result.affected_path == "src/main.ts"

    def test_failed_write_leaves_mirror_untouched(self, sandbox):
        """The mirror is updated only after the sandbox write succeeds."""
        sandbox.fail_writes.add("a.txt")
        result = run(sandbox, "ext_write_file", file_path="a.txt", content="x")

        assert not result.success
        assert "Cannot write a.txt" in result.error
        assert result.affected_path is None
        assert "a.txt" not in sandbox.get_files()

    def test_missing_content(self, sandbox):
        result = run(sandbox, "ext_write_file", file_path="a.txt")
        assert not result.success
        assert result.error == "Missing required argument: content"


class TestReadFile:
    """Tests for ext_read_file."""

    def test_reads_from_mirror(self, project):
        result = run(project, "ext_read_file", file_path="manifest.json")
        assert result.success
        assert json.loads(result.content)["name"] == "Demo"

    def test_falls_back_to_sandbox(self, project):
        project.disk["late.txt"] = "written outside the agent"
        result = run(project, "ext_read_file", file_path="late.txt")
        assert result.content == "written outside the agent"

    def test_line_range(self, project):
        result = run(project, "ext_read_file", file_path="src/App.tsx", start_line=2, end_line=2)
        assert result.content == "Lines 2-2 of 3 in src/App.tsx:\n  return <div>Hello</div>;"

    def test_missing_file(self, project):
        result = run(project, "ext_read_file", file_path="nope.js")
        assert not result.success
        assert result.error == "File not found: nope.js"
        assert result.content == "Error: File not found: nope.js"

    def test_invalid_range(self, project):
        result = run(project, "ext_read_file", file_path="src/App.tsx", start_line=5, end_line=2)
        assert not result.success
        assert "Invalid line range" in result.error

    def test_range_on_empty_file(self, sandbox):
        sandbox.disk["empty.txt"] = ""
        result = run(sandbox, "ext_read_file", file_path="empty.txt", start_line=1, end_line=5)
        assert result.success
        assert result.content == "empty.txt is empty"


class TestDeleteAndRename:
    """Tests for ext_delete_file and ext_rename_file."""

    def test_delete(self, project):
        result = run(project, "ext_delete_file", file_path="src/App.tsx")
        assert result.success
        assert result.affected_path == "src/App.tsx"
        assert "src/App.tsx" not in project.disk
        assert "src/App.tsx" not in project.get_files()

    def test_delete_missing(self, project):
        result = run(project, "ext_delete_file", file_path="ghost.js")
        assert not result.success
        assert result.error == "File not found: ghost.js"

    def test_rename(self, project):
        result = run(project, "ext_rename_file", old_path="src/App.tsx", new_path="src/Popup.tsx")

        assert result.success
        assert result.content == "Successfully renamed src/App.tsx to src/Popup.tsx"
        assert result.affected_path == "src/Popup.tsx"
        files = project.get_files()
        assert "src/App.tsx" not in files
        assert files["src/Popup.tsx"].startswith("export function App")

    def test_rename_source_only_in_mirror(self, project):
        """A source missing from the sandbox still completes the rename."""
        project.update_file("stale.js", "let x;")

        result = run(project, "ext_rename_file", old_path="stale.js", new_path="fresh.js")

        assert result.success
        assert result.affected_path == "fresh.js"
        assert "already missing" in result.content
        assert project.disk["fresh.js"] == "let x;"
        assert "stale.js" not in project.get_files()

    def test_rename_same_path(self, project):
        result = run(project, "ext_rename_file", old_path="a.js", new_path="./a.js")
        assert not result.success


class TestListAndSearch:
    """Tests for ext_list_files and ext_search_files."""

    def test_list_all(self, project):
        result = run(project, "ext_list_files")
        assert result.content.splitlines() == [
            "manifest.json",
            "package.json",
            "src/App.tsx",
            "src/background/index.ts",
        ]

    def test_list_directory(self, project):
        result = run(project, "ext_list_files", directory="src/background")
        assert result.content == "src/background/index.ts"

    def test_list_empty(self, sandbox):
        assert run(sandbox, "ext_list_files").content == "No files found"

    def test_search_counts_matches(self, project):
        result = run(project, "ext_search_files", query="chrome")
        assert result.content == "src/background/index.ts: 1 match(es)"

    def test_search_case_insensitive_by_default(self, project):
        result = run(project, "ext_search_files", query="HELLO")
        assert result.content == "src/App.tsx: 1 match(es)"

    def test_search_case_sensitive(self, project):
        result = run(project, "ext_search_files", query="HELLO", case_sensitive=True)
        assert result.content == 'No matches found for "HELLO"'

    def test_search_include_pattern(self, project):
        result = run(project, "ext_search_files", query="e", include_pattern="*.json")
        assert all(line.split(":")[0].endswith(".json") for line in result.content.splitlines())

    def test_search_exclude_directory_glob(self, project):
        result = run(project, "ext_search_files", query="chrome|Hello", exclude_pattern="src/**")
        assert result.content.startswith("No matches found")

    def test_invalid_regex(self, project):
        result = run(project, "ext_search_files", query="(")
        assert not result.success
        assert "Invalid search pattern" in result.error


class TestReplaceLines:
    """Tests for ext_replace_lines."""

    def test_replaces_unique_match(self, project):
        result = run(
            project,
            "ext_replace_lines",
            file_path="src/App.tsx",
            search="Hello",
            replace="Hi there",
        )
        assert result.success
        assert result.affected_path == "src/App.tsx"
        assert "<div>Hi there</div>" in project.get_files()["src/App.tsx"]
        assert project.disk["src/App.tsx"] == project.get_files()["src/App.tsx"]

    def test_not_found(self, project):
        result = run(project, "ext_replace_lines", file_path="src/App.tsx", search="Bye", replace="")
        assert not result.success
        assert "not found" in result.error

    def test_ambiguous_match(self, project):
        project.update_file("dup.txt", "x\nx\n")
        result = run(project, "ext_replace_lines", file_path="dup.txt", search="x", replace="y")
        assert not result.success
        assert "matches 2 times" in result.error


class TestDownloadFile:
    """Tests for ext_download_file."""

    @patch("extendr.tools.handlers.requests.get")
    def test_downloads_text(self, mock_get, sandbox):
        response = Mock(content=b"body { color: red; }", encoding="utf-8")
        response.raise_for_status.return_value = None
        mock_get.return_value = response

        result = run(sandbox, "ext_download_file", url="https://example.com/a.css", file_path="a.css")

        assert result.success
        assert result.affected_path == "a.css"
        assert sandbox.get_files()["a.css"] == "body { color: red; }"
        mock_get.assert_called_once_with("https://example.com/a.css", timeout=30)

    @patch("extendr.tools.handlers.requests.get")
    def test_http_error(self, mock_get, sandbox):
        mock_get.side_effect = requests.ConnectionError("refused")
        result = run(sandbox, "ext_download_file", url="https://example.com/a.css", file_path="a.css")
        assert not result.success
        assert result.error.startswith("Download failed")

    def test_rejects_non_http(self, sandbox):
        result = run(sandbox, "ext_download_file", url="file:///etc/passwd", file_path="x")
        assert not result.success
        assert "Unsupported URL scheme" in result.error


class TestDependencies:
    """Tests for ext_add_dependency and ext_remove_dependency."""

    def test_add(self, sandbox):
        result = run(sandbox, "ext_add_dependency", package="dexie")
        assert result.content == "Successfully installed dexie"
        assert sandbox.commands == [("npm", ["install", "dexie"])]
        assert result.affected_path is None

    def test_remove(self, sandbox):
        result = run(sandbox, "ext_remove_dependency", package="dexie")
        assert result.content == "Successfully removed dexie"
        assert sandbox.commands == [("npm", ["uninstall", "dexie"])]

    def test_npm_failure(self, sandbox):
        sandbox.command_result = CommandResult(exit_code=1, output="E404 not found")
        result = run(sandbox, "ext_add_dependency", package="nope-pkg")
        assert not result.success
        assert "E404" in result.error


class TestBuildAndPreview:
    """Tests for ext_build_preview and ext_stop_preview."""

    def test_build_triggers_flag(self, project):
        result = run(project, "ext_build_preview", install_deps=False)

        assert result.success
        assert result.build_triggered is True
        assert result.content == "Build completed. Preview is running."
        files, install = project.builds[0]
        assert install is False
        assert "manifest.json" in files

    def test_build_failure(self, project):
        project.build_error = RuntimeError("build failed with exit code 2")
        result = run(project, "ext_build_preview")
        assert not result.success
        assert result.build_triggered is False

    def test_stop(self, project):
        project.running = True
        result = run(project, "ext_stop_preview")
        assert result.content == "Preview server stopped"
        assert project.running is False


class TestRunCommand:
    """Tests for ext_run_command."""

    def test_splits_like_a_shell(self, sandbox):
        sandbox.command_result = CommandResult(exit_code=0, output="done")
        result = run(sandbox, "ext_run_command", command='mkdir -p "my icons"')

        assert result.content == "Exit code: 0\ndone"
        assert sandbox.commands == [("mkdir", ["-p", "my icons"])]

    def test_nonzero_exit_is_still_a_result(self, sandbox):
        """The model sees the exit code; a failing command is not a tool error."""
        sandbox.command_result = CommandResult(exit_code=2, output="oops")
        result = run(sandbox, "ext_run_command", command="false")
        assert result.success
        assert result.content.startswith("Exit code: 2")

    def test_unbalanced_quotes(self, sandbox):
        result = run(sandbox, "ext_run_command", command='echo "oops')
        assert not result.success


class TestConsoleLogsAndInfo:
    """Tests for ext_read_console_logs and ext_get_project_info."""

    def test_logs_filter(self, sandbox):
        sandbox.logs = ["ready", "TypeError: x is undefined", "error: chrome.tabs"]
        result = run(sandbox, "ext_read_console_logs", filter="error")
        assert result.content.splitlines() == ["TypeError: x is undefined", "error: chrome.tabs"]

    def test_logs_filter_invalid_regex_is_literal(self, sandbox):
        sandbox.logs = ["value [x", "other"]
        result = run(sandbox, "ext_read_console_logs", filter="[x")
        assert result.content == "value [x"

    def test_logs_capped(self, sandbox):
        sandbox.logs = [f"line {i}" for i in range(80)]
        lines = run(sandbox, "ext_read_console_logs").content.splitlines()
        assert len(lines) == 50
        assert lines[-1] == "line 79"

    def test_no_logs(self, sandbox):
        assert run(sandbox, "ext_read_console_logs").content == "No logs found"

    def test_project_info(self, project):
        info = json.loads(run(project, "ext_get_project_info").content)

        assert info["fileCount"] == 4
        assert info["manifest"]["manifest_version"] == 3
        assert info["packageDependencies"]["dependencies"] == {"dexie": "^4.0.0"}
        assert info["isRunning"] is False

    def test_project_info_invalid_manifest(self, sandbox):
        sandbox.update_file("manifest.json", "{not json")
        info = json.loads(run(sandbox, "ext_get_project_info").content)
        assert info["manifest"] == {"error": "Invalid JSON"}
        assert info["packageDependencies"] is None

"""Tests for the directory-backed sandbox."""

import shlex
import sys
import time

import pytest

from extendr.models import SandboxConfig
from extendr.sandbox import LocalSandbox, SandboxPathError

PYTHON = shlex.quote(sys.executable)


def make_sandbox(root, **overrides):
    settings = {"root": str(root), "install_command": "", "build_command": "", **overrides}
    return LocalSandbox(str(root), SandboxConfig(**settings))


class TestFiles:
    """Tests for file operations and the boot-time mirror."""

    def test_boot_mirrors_existing_files(self, tmp_path):
        (tmp_path / "popup").mkdir()
        (tmp_path / "popup" / "popup.js").write_text("console.log(1)")
        (tmp_path / "node_modules" / "dexie").mkdir(parents=True)
        (tmp_path / "node_modules" / "dexie" / "index.js").write_text("x")

        with make_sandbox(tmp_path) as box:
            assert box.booted
            assert box.get_files() == {"popup/popup.js": "console.log(1)"}
            assert box.list_files() == ["popup/popup.js"]
        assert not box.booted

    def test_boot_creates_root(self, tmp_path):
        root = tmp_path / "new" / "project"
        make_sandbox(root).boot()
        assert root.is_dir()

    def test_write_read_delete(self, tmp_path):
        box = make_sandbox(tmp_path).boot()

        box.write_file("src/content/content.js", "alert(1)")
        assert (tmp_path / "src" / "content" / "content.js").read_text() == "alert(1)"
        assert box.read_file("src/content/content.js") == "alert(1)"

        box.delete_file("src/content/content.js")
        with pytest.raises(FileNotFoundError):
            box.read_file("src/content/content.js")
        with pytest.raises(FileNotFoundError):
            box.delete_file("src/content/content.js")

    @pytest.mark.parametrize("path", ["../outside.txt", "a/../../outside.txt", "", "."])
    def test_rejects_escaping_paths(self, tmp_path, path):
        box = make_sandbox(tmp_path / "root").boot()
        with pytest.raises(SandboxPathError):
            box.write_file(path, "x")

    def test_leading_slash_stays_inside(self, tmp_path):
        box = make_sandbox(tmp_path).boot()
        box.write_file("/manifest.json", "{}")
        assert (tmp_path / "manifest.json").exists()

    def test_list_directory(self, tmp_path):
        box = make_sandbox(tmp_path).boot()
        box.write_file("popup/a.js", "")
        box.write_file("popup-extra.js", "")
        assert box.list_files("popup/") == ["popup/a.js"]


class TestCommands:
    """Tests for run_command and build."""

    def test_run_command(self, tmp_path):
        box = make_sandbox(tmp_path).boot()
        result = box.run_command(sys.executable, ["-c", "print('hello')"])
        assert result.ok
        assert result.output.strip() == "hello"

    def test_nonzero_exit(self, tmp_path):
        box = make_sandbox(tmp_path).boot()
        result = box.run_command(sys.executable, ["-c", "import sys; sys.exit(3)"])
        assert result.exit_code == 3
        assert not result.ok

    def test_missing_command(self, tmp_path):
        result = make_sandbox(tmp_path).boot().run_command("no-such-binary-xyz", [])
        assert result.exit_code == 127

    def test_command_timeout(self, tmp_path):
        box = make_sandbox(tmp_path, command_timeout=0.2).boot()
        result = box.run_command(sys.executable, ["-c", "import time; time.sleep(5)"])
        assert result.exit_code == 124
        assert "timed out" in result.output

    def test_build_writes_files_and_logs(self, tmp_path):
        box = make_sandbox(tmp_path, build_command=f"{PYTHON} -c \"print('built ok')\"").boot()

        box.build({"manifest.json": "{}"}, install_deps=False)

        assert (tmp_path / "manifest.json").read_text() == "{}"
        assert "[build] built ok" in box.get_logs()
        box.clear_logs()
        assert box.get_logs() == []

    def test_build_failure_raises(self, tmp_path):
        box = make_sandbox(tmp_path, build_command=f"{PYTHON} -c \"import sys; sys.exit(2)\"").boot()
        with pytest.raises(RuntimeError, match="exit code 2"):
            box.build({}, install_deps=False)

    def test_preview_lifecycle(self, tmp_path):
        preview = f"{PYTHON} -u -c \"import time; print('ready'); time.sleep(30)\""
        box = make_sandbox(tmp_path, preview_command=preview).boot()

        box.build({})
        assert box.is_running()
        deadline = time.monotonic() + 5
        while "ready" not in box.get_logs() and time.monotonic() < deadline:
            time.sleep(0.05)
        assert "ready" in box.get_logs()

        box.teardown()
        assert not box.is_running()


class TestTerminal:
    def test_terminal_callback(self, tmp_path):
        lines = []
        box = LocalSandbox(str(tmp_path), terminal=lines.append)
        box.write_to_terminal("Writing manifest.json\n")
        assert lines == ["Writing manifest.json\n"]

"""
Directory-backed sandbox.

Files live under a project root on the local disk; commands, installs, and
builds run as subprocesses in that directory; the preview runs as a
background process whose output is collected into a bounded log buffer.
"""

import logging
import os
import shlex
import subprocess
import threading
from collections import deque
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

from ..models import SandboxConfig
from .session import CommandResult, SandboxSession

logger = logging.getLogger(__name__)

# Directories never mirrored or listed
IGNORED_DIRS = frozenset({"node_modules", ".git", "dist", "__pycache__"})

# Largest file (bytes) loaded into the mirror at boot
MAX_MIRROR_BYTES = 1_000_000


class SandboxPathError(ValueError):
    """Raised for paths that are empty or escape the sandbox root."""


class LocalSandbox(SandboxSession):
    """Sandbox session backed by a directory on the local filesystem."""

    def __init__(
        self,
        root: str,
        config: Optional[SandboxConfig] = None,
        terminal: Optional[Callable[[str], None]] = None,
    ):
        """
        Initialize the sandbox.

        Args:
            root: Project directory; created on boot if missing
            config: Commands, timeouts, and buffer limits
            terminal: Callback receiving terminal echo lines
        """
        super().__init__()
        self.config = config or SandboxConfig(root=root)
        self.root = Path(root).expanduser().resolve()
        self._terminal = terminal
        self._logs: deque[str] = deque(maxlen=max(self.config.log_limit, 1))
        self._logs_lock = threading.Lock()
        self._preview: Optional[subprocess.Popen] = None
        self._preview_reader: Optional[threading.Thread] = None
        self._process_lock = threading.Lock()

    # -- lifecycle ---------------------------------------------------------

    def _on_boot(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        files = {}
        for rel in self._walk():
            full = self.root / rel
            try:
                if full.stat().st_size > MAX_MIRROR_BYTES:
                    continue
                files[rel] = full.read_text(encoding="utf-8")
            except (UnicodeDecodeError, OSError) as e:
                logger.debug("Skipping %s from mirror: %s", rel, e)
        self.set_files(files)
        logger.info("Sandbox booted at %s (%d files)", self.root, len(files))

    # -- paths -------------------------------------------------------------

    def _resolve(self, path: str) -> Path:
        """Map a project-relative path to an absolute path inside the root."""
        cleaned = (path or "").strip().replace("\\", "/").lstrip("/")
        if not cleaned or cleaned == ".":
            raise SandboxPathError("Path must not be empty")
        full = (self.root / cleaned).resolve()
        if full != self.root and self.root not in full.parents:
            raise SandboxPathError(f"Path escapes sandbox root: {path}")
        return full

    def _relative(self, full: Path) -> str:
        return full.relative_to(self.root).as_posix()

    def _walk(self) -> list[str]:
        paths = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
            for name in sorted(filenames):
                paths.append(self._relative(Path(dirpath) / name))
        return paths

    # -- file operations ---------------------------------------------------

    def write_file(self, path: str, content: str) -> None:
        full = self._resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(content, encoding="utf-8")

    def read_file(self, path: str) -> str:
        full = self._resolve(path)
        if not full.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return full.read_text(encoding="utf-8")

    def delete_file(self, path: str) -> None:
        full = self._resolve(path)
        if not full.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        full.unlink()

    def list_files(self, directory: Optional[str] = None) -> list[str]:
        paths = self._walk() if self.root.exists() else []
        if directory and directory not in (".", "/"):
            prefix = str(PurePosixPath(directory.strip("/"))) + "/"
            paths = [p for p in paths if p.startswith(prefix)]
        return paths

    # -- process and build -------------------------------------------------

    def run_command(self, command: str, args: list[str]) -> CommandResult:
        argv = [command, *args]
        logger.debug("Running command: %s", shlex.join(argv))
        try:
            completed = subprocess.run(
                argv,
                cwd=self.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.config.command_timeout or None,
            )
        except FileNotFoundError:
            return CommandResult(exit_code=127, output=f"Command not found: {command}")
        except subprocess.TimeoutExpired as e:
            output = e.output if isinstance(e.output, str) else ""
            return CommandResult(
                exit_code=124,
                output=f"{output}\nCommand timed out after {e.timeout}s".lstrip(),
            )
        return CommandResult(exit_code=completed.returncode, output=completed.stdout or "")

    def _run_configured(self, label: str, command_line: str) -> None:
        parts = shlex.split(command_line)
        if not parts:
            return
        self._append_log(f"[{label}] $ {command_line}")
        result = self.run_command(parts[0], parts[1:])
        for line in result.output.splitlines():
            self._append_log(f"[{label}] {line}")
        if not result.ok:
            tail = "\n".join(result.output.splitlines()[-20:])
            raise RuntimeError(f"{label} failed with exit code {result.exit_code}:\n{tail}")

    def build(self, files: dict[str, str], install_deps: bool = True) -> None:
        for path, content in files.items():
            self.write_file(path, content)

        if install_deps and self.config.install_command:
            self._run_configured("install", self.config.install_command)
        if self.config.build_command:
            self._run_configured("build", self.config.build_command)

        self.stop()
        if self.config.preview_command:
            self._start_preview(self.config.preview_command)

    def _start_preview(self, command_line: str) -> None:
        with self._process_lock:
            logger.info("Starting preview: %s", command_line)
            self._preview = subprocess.Popen(
                shlex.split(command_line),
                cwd=self.root,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
            self._preview_reader = threading.Thread(
                target=self._pump_output,
                args=(self._preview,),
                name="sandbox-preview-logs",
                daemon=True,
            )
            self._preview_reader.start()

    def _pump_output(self, process: subprocess.Popen) -> None:
        if process.stdout is None:
            return
        for line in process.stdout:
            self._append_log(line.rstrip("\n"))

    def stop(self) -> None:
        with self._process_lock:
            process, self._preview = self._preview, None
        if process is None or process.poll() is not None:
            return
        logger.info("Stopping preview (pid %s)", process.pid)
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def is_running(self) -> bool:
        process = self._preview
        return process is not None and process.poll() is None

    # -- observability -----------------------------------------------------

    def _append_log(self, line: str) -> None:
        with self._logs_lock:
            self._logs.append(line)

    def get_logs(self) -> list[str]:
        with self._logs_lock:
            return list(self._logs)

    def clear_logs(self) -> None:
        with self._logs_lock:
            self._logs.clear()

    def write_to_terminal(self, text: str) -> None:
        logger.debug("terminal: %s", text.rstrip())
        if self._terminal is not None:
            self._terminal(text)
        elif self.config.echo_terminal:
            print(text, end="" if text.endswith("\n") else "\n", flush=True)

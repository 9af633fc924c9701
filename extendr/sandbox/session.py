"""
Capability contract between the agent and a build sandbox.

A ``SandboxSession`` is created by the caller, booted once, and passed by
handle into the agent loop and the tool executor. The agent never owns its
lifecycle.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Exit status and combined output of a sandbox command."""

    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class SandboxSession(ABC):
    """
    Narrow set of sandbox operations the agent is allowed to invoke.

    Subclasses implement file, process, and log operations against a real
    sandbox. The local file mirror (path -> content) is kept here and guarded
    by a lock, since tool handlers in one batch touch it concurrently.
    """

    def __init__(self) -> None:
        self._files: dict[str, str] = {}
        self._files_lock = threading.RLock()
        self._booted = False

    # -- lifecycle ---------------------------------------------------------

    @property
    def booted(self) -> bool:
        return self._booted

    def boot(self) -> "SandboxSession":
        """Prepare the sandbox for use. Idempotent."""
        if not self._booted:
            self._on_boot()
            self._booted = True
        return self

    def teardown(self) -> None:
        """Stop running processes and release sandbox resources. Idempotent."""
        if not self._booted:
            return
        try:
            self._on_teardown()
        finally:
            self._booted = False

    def _on_boot(self) -> None:
        pass

    def _on_teardown(self) -> None:
        if self.is_running():
            self.stop()

    def __enter__(self) -> "SandboxSession":
        return self.boot()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    # -- file operations ---------------------------------------------------

    @abstractmethod
    def write_file(self, path: str, content: str) -> None:
        """Write ``content`` to ``path``, creating parent directories."""

    @abstractmethod
    def read_file(self, path: str) -> str:
        """Return the content of ``path``; raise FileNotFoundError if absent."""

    @abstractmethod
    def delete_file(self, path: str) -> None:
        """Remove ``path``; raise FileNotFoundError if absent."""

    @abstractmethod
    def list_files(self, directory: Optional[str] = None) -> list[str]:
        """Return project-relative paths, optionally under ``directory``."""

    # -- process and build -------------------------------------------------

    @abstractmethod
    def run_command(self, command: str, args: list[str]) -> CommandResult:
        """Run ``command`` with ``args`` inside the sandbox and wait for it."""

    @abstractmethod
    def build(self, files: dict[str, str], install_deps: bool = True) -> None:
        """Mount ``files``, optionally install dependencies, build, and start the preview."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the running preview, if any."""

    @abstractmethod
    def is_running(self) -> bool:
        """Whether a preview process is currently running."""

    # -- observability -----------------------------------------------------

    @abstractmethod
    def get_logs(self) -> list[str]:
        """Console log lines from the preview and build, oldest first."""

    @abstractmethod
    def clear_logs(self) -> None:
        """Discard collected console logs."""

    @abstractmethod
    def write_to_terminal(self, text: str) -> None:
        """Echo a progress line to the user's terminal."""

    # -- local mirror ------------------------------------------------------

    def get_files(self) -> dict[str, str]:
        """Snapshot of the local file mirror."""
        with self._files_lock:
            return dict(self._files)

    def set_files(self, files: dict[str, str]) -> None:
        """Replace the local file mirror."""
        with self._files_lock:
            self._files = dict(files)

    def update_file(self, path: str, content: Optional[str]) -> None:
        """Set one mirrored file; ``None`` removes it."""
        with self._files_lock:
            if content is None:
                self._files.pop(path, None)
            else:
                self._files[path] = content

"""
In-memory registry of API agent sessions.

Each session owns an ``AgentService``, a ``LocalSandbox`` rooted in its own
workspace directory, and the text-only conversation history sent with every
chat request. A per-session lock keeps one request running at a time.
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from ..agent.loop import AgentService, create_service_from_env
from ..agent.messages import Message
from ..models import AppConfig, ProviderType
from ..providers import create_provider
from ..sandbox import LocalSandbox

logger = logging.getLogger(__name__)


@dataclass
class AgentSession:
    id: str
    service: AgentService
    sandbox: LocalSandbox
    history: list[Message] = field(default_factory=list)
    created: int = field(default_factory=lambda: int(time.time()))
    lock: threading.Lock = field(default_factory=threading.Lock)
    # Orders claiming the session against cancel requests
    _state_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def busy(self) -> bool:
        return self.lock.locked()

    def claim(self) -> bool:
        """
        Take the session for one request.

        A stale cancel is cleared before the session shows as busy, so any
        cancel accepted afterwards applies to this request.

        Returns:
            False if another request holds the session
        """
        with self._state_lock:
            if not self.lock.acquire(blocking=False):
                return False
            self.service.reset()
            return True

    def release(self) -> None:
        with self._state_lock:
            self.lock.release()

    def request_cancel(self) -> bool:
        """Cancel the running request; returns False when the session is idle."""
        with self._state_lock:
            if not self.busy:
                return False
            self.service.cancel()
            return True


class SessionStore:
    """Creates, looks up, and tears down sessions."""

    def __init__(self, config: AppConfig):
        self.config = config
        self._sessions: dict[str, AgentSession] = {}
        self._lock = threading.Lock()

    def create(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        files: Optional[dict[str, str]] = None,
    ) -> AgentSession:
        """
        Create a session with its own service and workspace.

        Raises:
            ValueError: Unknown provider or no usable credentials
        """
        provider_config = self.config.provider
        if provider:
            try:
                provider_type = ProviderType(provider.strip().lower())
            except ValueError:
                raise ValueError(f"Unknown provider type: {provider}")
            if provider_type != provider_config.type:
                provider_config = replace(provider_config, type=provider_type, api_key="", model="")
        provider_config = provider_config.with_overrides(model=model, api_key=api_key)

        service = AgentService(create_provider(provider_config), self.config.agent)
        if not service.is_configured() and not (provider or api_key):
            service = create_service_from_env(self.config.agent, model=model or "") or service
        if not service.is_configured():
            raise ValueError(f"No API key configured for provider '{provider_config.type.value}'")

        session_id = f"sess-{uuid.uuid4().hex[:12]}"
        root = Path(self.config.server.workspaces_root) / session_id
        sandbox = LocalSandbox(str(root), replace(self.config.sandbox, root=str(root)))
        sandbox.boot()
        try:
            for path, content in (files or {}).items():
                sandbox.write_file(path, content)
                sandbox.update_file(path, content)
        except Exception:
            sandbox.teardown()
            service.close()
            raise

        session = AgentSession(id=session_id, service=service, sandbox=sandbox)
        with self._lock:
            self._sessions[session_id] = session
        logger.info(
            "[%s] Session created (provider=%s, model=%s, files=%d)",
            session_id,
            provider_config.type.value,
            service.provider.model,
            len(files or {}),
        )
        return session

    def get(self, session_id: str) -> Optional[AgentSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def sessions(self) -> list[AgentSession]:
        with self._lock:
            return list(self._sessions.values())

    def delete(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.service.cancel()
        session.sandbox.teardown()
        session.service.close()
        logger.info(f"[{session_id}] Session deleted")
        return True

    def close_all(self) -> None:
        for session in self.sessions():
            self.delete(session.id)

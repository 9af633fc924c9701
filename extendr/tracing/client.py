"""
Langfuse tracing client with graceful degradation.

Tracing is optional: without credentials, or when the Langfuse endpoint
rejects the auth check, the client stays disabled and every tracing call
becomes a no-op. Agent behaviour never depends on tracing succeeding.
"""

import logging
from typing import Optional

from langfuse import Langfuse

from ..models import LangfuseConfig

logger = logging.getLogger(__name__)


class TracingClient:
    """Holds the Langfuse SDK client when tracing is usable."""

    def __init__(self, config: Optional[LangfuseConfig] = None):
        config = config or LangfuseConfig()
        self._client: Optional[Langfuse] = None
        self._error: Optional[str] = None

        if not config.is_configured:
            self._error = "Langfuse credentials not configured"
            logger.debug(f"Tracing disabled: {self._error}")
            return

        if config.host and not config.host.startswith(("http://", "https://")):
            logger.warning(
                "LANGFUSE_HOST '%s' has no scheme; expected http://host:port or https://host",
                config.host,
            )

        kwargs = {
            "public_key": config.public_key,
            "secret_key": config.secret_key,
            "debug": config.debug,
        }
        if config.host:
            kwargs["host"] = config.host

        try:
            client = Langfuse(**kwargs)
            if not client.auth_check():
                self._error = "Langfuse auth_check() failed; check host and credentials"
                logger.warning(f"Tracing disabled: {self._error}")
                return
        except Exception as e:
            self._error = f"Failed to initialize Langfuse client: {e}"
            logger.warning(f"Tracing disabled: {self._error}")
            return

        self._client = client
        logger.info(f"Langfuse tracing enabled (host: {config.host or 'default'})")

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def client(self) -> Optional[Langfuse]:
        return self._client

    def flush(self) -> None:
        if self._client is None:
            return
        try:
            self._client.flush()
        except Exception as e:
            logger.warning(f"Failed to flush tracing events: {e}")

    def shutdown(self) -> None:
        if self._client is None:
            return
        try:
            self._client.shutdown()
            logger.info("Langfuse tracing client shutdown complete")
        except Exception as e:
            logger.warning(f"Error during tracing client shutdown: {e}")
        self._client = None


_tracing_client: Optional[TracingClient] = None


def init_tracing_client(config: Optional[LangfuseConfig] = None) -> TracingClient:
    """Create the process-wide tracing client."""
    global _tracing_client
    _tracing_client = TracingClient(config)
    return _tracing_client


def get_tracing_client() -> Optional[TracingClient]:
    return _tracing_client


def shutdown_tracing() -> None:
    """Flush and drop the process-wide tracing client."""
    global _tracing_client
    if _tracing_client is not None:
        _tracing_client.shutdown()
        _tracing_client = None

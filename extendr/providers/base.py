"""
Base class for model provider adapters.

Every adapter exposes the same ``chat(messages, tools, system_prompt)``
contract and returns a ``ProviderResponse``. ``chat`` never raises: any
failure, whether transport, HTTP status, auth, or a malformed body, becomes
an error response so the agent loop can apply one retry policy to all
vendors. Adapters do not retry and keep no conversational state.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from ..agent.messages import Message, ProviderResponse
from ..models import ProviderConfig, ProviderType
from ..tools.definitions import ToolDefinition

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 8192
DEFAULT_TEMPERATURE = 0.7

# Longest vendor error body carried into an error response
MAX_ERROR_BODY = 500


class BaseProvider(ABC):
    """Common configuration handling and the never-raise ``chat`` template."""

    provider_type: ProviderType
    display_name: str = ""
    default_model: str = ""
    models: tuple[str, ...] = ()

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.provider_type.value

    @property
    def model(self) -> str:
        return self.config.model or self.default_model

    @property
    def max_tokens(self) -> int:
        return self.config.max_tokens or DEFAULT_MAX_TOKENS

    @property
    def temperature(self) -> float:
        if self.config.temperature is None:
            return DEFAULT_TEMPERATURE
        return self.config.temperature

    @property
    def timeout(self) -> Optional[float]:
        return self.config.timeout or None

    def available_models(self) -> list[str]:
        return list(self.models)

    def is_configured(self) -> bool:
        return self.config.has_api_key

    def chat(
        self,
        messages: list[Message],
        tools: Optional[list[ToolDefinition]] = None,
        system_prompt: Optional[str] = None,
    ) -> ProviderResponse:
        """
        Send the conversation to the vendor and normalize the reply.

        Args:
            messages: Conversation history, oldest first
            tools: Tool catalogue offered to the model
            system_prompt: Instructions sent ahead of the history

        Returns:
            A TEXT, TOOL_CALLS, or ERROR response
        """
        if not self.is_configured():
            return ProviderResponse.failure(f"{self.display_name} API key not configured")

        logger.debug(
            "[%s] Sending %d messages to %s", self.display_name, len(messages), self.model
        )
        try:
            response = self._send(list(messages), list(tools or []), system_prompt or "")
        except Exception as e:
            logger.error("[%s] Request failed: %s", self.display_name, e)
            return ProviderResponse.failure(str(e) or type(e).__name__)

        if response.tool_calls:
            logger.debug(
                "[%s] Received tool calls: %s",
                self.display_name,
                [call.name for call in response.tool_calls],
            )
        elif response.error:
            logger.error("[%s] API error: %s", self.display_name, response.error)
        else:
            logger.debug("[%s] Received text response: %.100s", self.display_name, response.content)
        return response

    @abstractmethod
    def _send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str,
    ) -> ProviderResponse:
        """Vendor-specific request; may raise, ``chat`` converts failures."""

    @staticmethod
    def generate_call_id() -> str:
        """Synthesize a tool call id for vendors that do not supply one."""
        return f"call_{uuid.uuid4().hex[:24]}"

    @staticmethod
    def error_from_http(status_code: int, body: object) -> str:
        """Best-effort error message from a vendor error payload."""
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str) and error:
                return error
            if body.get("message"):
                return str(body["message"])
        text = str(body or "").strip()
        if text:
            return f"HTTP {status_code}: {text[:MAX_ERROR_BODY]}"
        return f"HTTP {status_code}"

    def close(self) -> None:
        """Release any underlying client resources."""

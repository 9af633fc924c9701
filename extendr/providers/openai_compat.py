"""
OpenAI chat-completions adapter.

Also serves every vendor that speaks the same protocol (DeepSeek,
OpenRouter) through a different base URL and default model.
"""

import json
import logging
from typing import Any, Optional

import openai
from openai import OpenAI

from ..agent.messages import Message, ProviderResponse, Role, ToolCall
from ..models import ProviderType
from ..tools.definitions import ToolDefinition
from .base import BaseProvider

logger = logging.getLogger(__name__)


def parse_arguments(raw: Any) -> dict:
    """Decode a JSON arguments string; malformed input yields ``{}``."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Failed to parse tool arguments: %.200s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


class OpenAIProvider(BaseProvider):
    """Adapter for the OpenAI chat completions API via the ``openai`` SDK."""

    provider_type = ProviderType.OPENAI
    display_name = "OpenAI"
    default_model = "gpt-4o-mini"
    default_base_url: Optional[str] = None
    models = (
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "gpt-4",
        "gpt-3.5-turbo",
    )

    def __init__(self, config):
        super().__init__(config)
        self._client: Optional[OpenAI] = None

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url or self.default_base_url,
                timeout=self.timeout,
                max_retries=0,
                default_headers=self.default_headers() or None,
            )
        return self._client

    def default_headers(self) -> dict[str, str]:
        return {}

    def convert_messages(self, messages: list[Message], system_prompt: str) -> list[dict]:
        """Translate history into chat-completions messages."""
        converted: list[dict] = []
        if system_prompt:
            converted.append({"role": "system", "content": system_prompt})

        for message in messages:
            if message.role in (Role.SYSTEM, Role.USER):
                converted.append({"role": message.role.value, "content": message.content})
            elif message.role == Role.ASSISTANT:
                entry: dict[str, Any] = {
                    "role": "assistant",
                    "content": message.content or None,
                }
                if message.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.name,
                                "arguments": json.dumps(call.arguments),
                            },
                        }
                        for call in message.tool_calls
                    ]
                converted.append(entry)
            elif message.role == Role.TOOL and message.tool_result is not None:
                converted.append(
                    {
                        "role": "tool",
                        "tool_call_id": message.tool_result.tool_call_id,
                        "content": message.tool_result.content,
                    }
                )
        return converted

    def _send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str,
    ) -> ProviderResponse:
        request: dict[str, Any] = {
            "model": self.model,
            "messages": self.convert_messages(messages, system_prompt),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if tools:
            request["tools"] = [tool.to_openai() for tool in tools]
            request["tool_choice"] = "auto"

        try:
            completion = self.client.chat.completions.create(**request)
        except openai.APIStatusError as e:
            return ProviderResponse.failure(self.error_from_http(e.status_code, e.body))
        return self.parse_completion(completion)

    def parse_completion(self, completion) -> ProviderResponse:
        """Normalize a chat completion into a ProviderResponse."""
        if not getattr(completion, "choices", None):
            return ProviderResponse.failure("No response choices")

        message = completion.choices[0].message
        usage = None
        if getattr(completion, "usage", None):
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }

        calls = [
            ToolCall(
                id=tool_call.id or self.generate_call_id(),
                name=tool_call.function.name,
                arguments=parse_arguments(tool_call.function.arguments),
            )
            for tool_call in (message.tool_calls or [])
        ]
        return ProviderResponse.with_tool_calls(calls, content=message.content or "", usage=usage)

    def close(self) -> None:
        if self._client is None:
            return
        try:
            self._client.close()
        except Exception as e:
            logger.debug("Error closing OpenAI client: %s", e)
        self._client = None


class DeepSeekProvider(OpenAIProvider):
    """DeepSeek through its OpenAI-compatible endpoint."""

    provider_type = ProviderType.DEEPSEEK
    display_name = "DeepSeek"
    default_model = "deepseek-chat"
    default_base_url = "https://api.deepseek.com/v1"
    models = ("deepseek-chat", "deepseek-coder")

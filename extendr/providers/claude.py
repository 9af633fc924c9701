"""
Anthropic Claude adapter using the Messages API over ``requests``.

Tool calls travel as ``tool_use`` content blocks on assistant turns and
results as ``tool_result`` blocks on user turns. The API requires roles to
alternate, so consecutive turns with the same role are merged.
"""

import logging
from typing import Any

import requests

from ..agent.messages import Message, ProviderResponse, Role, ToolCall
from ..models import ProviderType
from ..tools.definitions import ToolDefinition
from .base import BaseProvider

logger = logging.getLogger(__name__)

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(BaseProvider):
    """Adapter for Anthropic Claude models."""

    provider_type = ProviderType.CLAUDE
    display_name = "Anthropic Claude"
    default_model = "claude-sonnet-4-20250514"
    models = (
        "claude-sonnet-4-20250514",
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
        "claude-3-opus-20240229",
        "claude-3-haiku-20240307",
    )

    @property
    def base_url(self) -> str:
        return (self.config.base_url or ANTHROPIC_BASE_URL).rstrip("/")

    def convert_messages(self, messages: list[Message]) -> list[dict]:
        """Translate history into alternating Claude turns."""
        turns: list[dict] = []

        def append(role: str, blocks: list[dict]) -> None:
            if not blocks:
                return
            if turns and turns[-1]["role"] == role:
                turns[-1]["content"].extend(blocks)
            else:
                turns.append({"role": role, "content": blocks})

        for message in messages:
            if message.role == Role.SYSTEM:
                continue
            if message.role == Role.USER:
                append("user", [{"type": "text", "text": message.content}])
            elif message.role == Role.ASSISTANT:
                blocks: list[dict] = []
                if message.content:
                    blocks.append({"type": "text", "text": message.content})
                for call in message.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": call.id,
                            "name": call.name,
                            "input": call.arguments,
                        }
                    )
                append("assistant", blocks)
            elif message.role == Role.TOOL and message.tool_result is not None:
                result = message.tool_result
                block: dict[str, Any] = {
                    "type": "tool_result",
                    "tool_use_id": result.tool_call_id,
                    "content": result.content,
                }
                if not result.success:
                    block["is_error"] = True
                append("user", [block])
        return turns

    @staticmethod
    def convert_tools(tools: list[ToolDefinition]) -> list[dict]:
        return [
            {
                "name": tool.name.value,
                "description": tool.description,
                "input_schema": tool.schema(),
            }
            for tool in tools
        ]

    def _send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str,
    ) -> ProviderResponse:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": self.convert_messages(messages),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if system_prompt:
            body["system"] = system_prompt
        if tools:
            body["tools"] = self.convert_tools(tools)

        response = requests.post(
            f"{self.base_url}/messages",
            headers={
                "Content-Type": "application/json",
                "x-api-key": self.config.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
            json=body,
            timeout=self.timeout,
        )
        try:
            data = response.json()
        except ValueError:
            data = response.text

        if not response.ok or (isinstance(data, dict) and data.get("error")):
            return ProviderResponse.failure(self.error_from_http(response.status_code, data))
        if not isinstance(data, dict):
            return ProviderResponse.failure("Malformed response body")
        return self.parse_response(data)

    def parse_response(self, data: dict) -> ProviderResponse:
        """Normalize a Messages API response body."""
        calls = []
        text_parts = []
        for block in data.get("content") or []:
            if block.get("type") == "tool_use":
                calls.append(
                    ToolCall(
                        id=block.get("id") or self.generate_call_id(),
                        name=block.get("name", ""),
                        arguments=block.get("input") or {},
                    )
                )
            elif block.get("type") == "text":
                text_parts.append(block.get("text", ""))

        usage = None
        if isinstance(data.get("usage"), dict):
            prompt = data["usage"].get("input_tokens", 0)
            completion = data["usage"].get("output_tokens", 0)
            usage = {
                "prompt_tokens": prompt,
                "completion_tokens": completion,
                "total_tokens": prompt + completion,
            }
        return ProviderResponse.with_tool_calls(calls, content="".join(text_parts), usage=usage)

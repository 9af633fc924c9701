"""
Google Gemini adapter using the Generative Language REST API over ``requests``.

Gemini does not assign identifiers to function calls, so ids are synthesized
here; tool results are correlated back by function name. When no API key is
configured the adapter can go through a proxy endpoint instead.
"""

import logging
from typing import Any, Mapping

import requests

from ..agent.messages import Message, ProviderResponse, Role, ToolCall
from ..models import ProviderType
from ..tools.definitions import ToolDefinition
from .base import BaseProvider

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Schema keys Gemini function declarations accept for a property
SUPPORTED_PROPERTY_KEYS = ("type", "description", "enum")


class GeminiProvider(BaseProvider):
    """Adapter for Google Gemini models."""

    provider_type = ProviderType.GEMINI
    display_name = "Google Gemini"
    default_model = "gemini-2.5-pro"
    models = (
        "gemini-2.5-pro",
        "gemini-2.5-flash",
        "gemini-2.0-flash",
        "gemini-2.0-flash-exp",
        "gemini-1.5-flash",
        "gemini-1.5-pro",
        "gemini-1.5-flash-8b",
    )

    @property
    def base_url(self) -> str:
        return (self.config.base_url or GEMINI_BASE_URL).rstrip("/")

    @property
    def uses_proxy(self) -> bool:
        return not self.config.api_key and bool(self.config.proxy_url)

    def is_configured(self) -> bool:
        return bool(self.config.api_key or self.config.proxy_url)

    def convert_messages(self, messages: list[Message]) -> list[dict]:
        """Translate history into Gemini ``contents``."""
        contents: list[dict] = []

        def append(role: str, parts: list[dict]) -> None:
            if not parts:
                return
            if contents and contents[-1]["role"] == role:
                contents[-1]["parts"].extend(parts)
            else:
                contents.append({"role": role, "parts": parts})

        for message in messages:
            if message.role == Role.SYSTEM:
                continue
            if message.role == Role.USER:
                append("user", [{"text": message.content}])
            elif message.role == Role.ASSISTANT:
                parts: list[dict] = []
                if message.content:
                    parts.append({"text": message.content})
                for call in message.tool_calls:
                    parts.append({"functionCall": {"name": call.name, "args": call.arguments}})
                append("model", parts)
            elif message.role == Role.TOOL and message.tool_result is not None:
                result = message.tool_result
                append(
                    "user",
                    [
                        {
                            "functionResponse": {
                                "name": result.name,
                                "response": {"result": result.content},
                            }
                        }
                    ],
                )
        return contents

    @staticmethod
    def convert_tools(tools: list[ToolDefinition]) -> dict:
        declarations = []
        for tool in tools:
            declaration: dict[str, Any] = {
                "name": tool.name.value,
                "description": tool.description,
            }
            properties: Mapping[str, Any] = tool.parameters.get("properties") or {}
            if properties:
                declaration["parameters"] = {
                    "type": "object",
                    "properties": {
                        key: {k: prop[k] for k in SUPPORTED_PROPERTY_KEYS if k in prop}
                        for key, prop in tool.schema()["properties"].items()
                    },
                    "required": list(tool.parameters.get("required") or []),
                }
            declarations.append(declaration)
        return {"functionDeclarations": declarations}

    def _endpoint(self) -> tuple[str, dict[str, str], dict[str, str]]:
        headers = {"Content-Type": "application/json"}
        if self.uses_proxy:
            if self.config.proxy_token:
                headers["Authorization"] = f"Bearer {self.config.proxy_token}"
            return self.config.proxy_url, headers, {"model": self.model}
        url = f"{self.base_url}/models/{self.model}:generateContent"
        return url, headers, {"key": self.config.api_key}

    def _send(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str,
    ) -> ProviderResponse:
        body: dict[str, Any] = {
            "contents": self.convert_messages(messages),
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_tokens,
            },
        }
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        if tools:
            body["tools"] = [self.convert_tools(tools)]

        url, headers, params = self._endpoint()
        logger.debug(
            "[%s] POST %s (%s)", self.display_name, self.model, "proxy" if self.uses_proxy else "direct"
        )
        response = requests.post(url, headers=headers, params=params, json=body, timeout=self.timeout)
        try:
            data = response.json()
        except ValueError:
            data = response.text

        if not response.ok:
            return ProviderResponse.failure(self.error_from_http(response.status_code, data))
        if not isinstance(data, dict):
            return ProviderResponse.failure("Malformed response body")
        return self.parse_response(data)

    def parse_response(self, data: dict) -> ProviderResponse:
        """Normalize a ``generateContent`` response body."""
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            reason = feedback.get("blockReason")
            return ProviderResponse.failure(
                f"Request blocked: {reason}" if reason else "No response candidate"
            )

        calls = []
        text_parts = []
        for part in (candidates[0].get("content") or {}).get("parts") or []:
            if "functionCall" in part:
                function_call = part["functionCall"] or {}
                calls.append(
                    ToolCall(
                        id=self.generate_call_id(),
                        name=function_call.get("name", ""),
                        arguments=function_call.get("args") or {},
                    )
                )
            if part.get("text"):
                text_parts.append(part["text"])

        usage = None
        metadata = data.get("usageMetadata")
        if isinstance(metadata, dict):
            usage = {
                "prompt_tokens": metadata.get("promptTokenCount", 0),
                "completion_tokens": metadata.get("candidatesTokenCount", 0),
                "total_tokens": metadata.get("totalTokenCount", 0),
            }
        return ProviderResponse.with_tool_calls(calls, content="".join(text_parts), usage=usage)

"""
OpenRouter adapter.

OpenRouter proxies many vendors behind the OpenAI chat-completions protocol
and asks clients to identify themselves with attribution headers.
"""

from ..models import ProviderType
from .openai_compat import OpenAIProvider


class OpenRouterProvider(OpenAIProvider):
    """Adapter for https://openrouter.ai."""

    provider_type = ProviderType.OPENROUTER
    display_name = "OpenRouter"
    default_model = "qwen/qwen-2.5-72b-instruct"
    default_base_url = "https://openrouter.ai/api/v1"
    models = (
        "mistralai/devstral-2512:free",
        "anthropic/claude-sonnet-4",
        "anthropic/claude-3.5-sonnet",
        "anthropic/claude-3-haiku",
        "openai/gpt-4o",
        "openai/gpt-4o-mini",
        "google/gemini-2.0-flash-exp:free",
        "google/gemini-flash-1.5",
        "meta-llama/llama-3.1-70b-instruct",
        "mistralai/mistral-large",
        "deepseek/deepseek-chat",
        "qwen/qwen-2.5-72b-instruct",
    )

    def default_headers(self) -> dict[str, str]:
        headers = {}
        if self.config.site_url:
            headers["HTTP-Referer"] = self.config.site_url
        if self.config.app_name:
            headers["X-Title"] = self.config.app_name
        return headers

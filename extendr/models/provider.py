"""
Provider configuration models.

Describes which model vendor the agent talks to and the common knobs every
adapter applies (model, output limit, sampling temperature, timeout).
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class ProviderType(str, Enum):
    """Supported model vendors."""

    GEMINI = "gemini"
    OPENAI = "openai"
    CLAUDE = "claude"
    DEEPSEEK = "deepseek"
    OPENROUTER = "openrouter"


@dataclass
class ProviderConfig:
    """Connection and generation settings for one provider."""

    type: ProviderType = ProviderType.OPENAI
    api_key: str = ""
    model: str = ""  # empty -> provider default
    base_url: str = ""  # empty -> vendor endpoint
    max_tokens: int = 8192
    temperature: float = 0.7
    timeout: float = 120.0

    # Gemini proxy, used when no API key is configured
    proxy_url: str = ""
    proxy_token: str = ""

    # OpenRouter attribution headers
    site_url: str = "http://localhost"
    app_name: str = "Extendr"

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def with_overrides(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> "ProviderConfig":
        """Copy of this config with the given fields replaced when set."""
        changes = {}
        if model:
            changes["model"] = model
        if api_key:
            changes["api_key"] = api_key
        return replace(self, **changes)

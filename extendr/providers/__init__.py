"""
Model provider adapters and the factory that picks one.
"""

from dataclasses import dataclass
from typing import Optional, Union

from ..models import ProviderConfig, ProviderType
from .base import BaseProvider
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .openai_compat import DeepSeekProvider, OpenAIProvider
from .openrouter import OpenRouterProvider

PROVIDER_CLASSES: dict[ProviderType, type[BaseProvider]] = {
    ProviderType.GEMINI: GeminiProvider,
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.CLAUDE: ClaudeProvider,
    ProviderType.DEEPSEEK: DeepSeekProvider,
    ProviderType.OPENROUTER: OpenRouterProvider,
}

# Key prefixes, most specific first
KEY_PREFIXES: tuple[tuple[str, ProviderType], ...] = (
    ("AIza", ProviderType.GEMINI),
    ("sk-ant-", ProviderType.CLAUDE),
    ("sk-or-", ProviderType.OPENROUTER),
    ("sk-", ProviderType.OPENAI),
)


@dataclass(frozen=True)
class ProviderInfo:
    """Provider metadata for listings and key entry hints."""

    type: ProviderType
    display_name: str
    key_prefix: str
    key_placeholder: str
    default_model: str
    models: tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "display_name": self.display_name,
            "key_prefix": self.key_prefix,
            "key_placeholder": self.key_placeholder,
            "default_model": self.default_model,
            "models": list(self.models),
        }


def _coerce_type(provider_type: Union[str, ProviderType]) -> ProviderType:
    if isinstance(provider_type, ProviderType):
        return provider_type
    try:
        return ProviderType(provider_type.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown provider type: {provider_type}")


def create_provider(config: ProviderConfig) -> BaseProvider:
    """Instantiate the adapter for ``config.type``."""
    provider_class = PROVIDER_CLASSES.get(_coerce_type(config.type))
    if provider_class is None:
        raise ValueError(f"Unknown provider type: {config.type}")
    return provider_class(config)


def detect_provider_type(api_key: str) -> Optional[ProviderType]:
    """Guess the vendor from an API key prefix."""
    key = (api_key or "").strip()
    for prefix, provider_type in KEY_PREFIXES:
        if key.startswith(prefix):
            return provider_type
    return None


def create_provider_from_key(
    api_key: str,
    preferred_type: Optional[Union[str, ProviderType]] = None,
    model: str = "",
) -> BaseProvider:
    """Create a provider, detecting the vendor from the key when not given."""
    provider_type = _coerce_type(preferred_type) if preferred_type else detect_provider_type(api_key)
    if provider_type is None:
        raise ValueError(
            "Could not detect provider type from API key. Please specify explicitly."
        )
    return create_provider(ProviderConfig(type=provider_type, api_key=api_key, model=model))


def provider_info_list() -> list[ProviderInfo]:
    """Metadata for every supported provider."""
    prefixes = {provider_type: prefix for prefix, provider_type in KEY_PREFIXES}
    prefixes[ProviderType.DEEPSEEK] = "sk-"
    return [
        ProviderInfo(
            type=provider_type,
            display_name=provider_class.display_name,
            key_prefix=prefixes[provider_type],
            key_placeholder=f"{prefixes[provider_type]}...",
            default_model=provider_class.default_model,
            models=provider_class.models,
        )
        for provider_type, provider_class in PROVIDER_CLASSES.items()
    ]


def get_provider_info(provider_type: Union[str, ProviderType]) -> Optional[ProviderInfo]:
    if not is_provider_supported(provider_type):
        return None
    wanted = _coerce_type(provider_type)
    return next((info for info in provider_info_list() if info.type == wanted), None)


def is_provider_supported(provider_type: Union[str, ProviderType]) -> bool:
    try:
        _coerce_type(provider_type)
    except (ValueError, AttributeError):
        return False
    return True


def validate_api_key(key: str, provider_type: Union[str, ProviderType]) -> bool:
    """Check that ``key`` has the shape expected for ``provider_type``."""
    if not key or not isinstance(key, str):
        return False
    if not is_provider_supported(provider_type):
        return len(key) > 10
    info = get_provider_info(provider_type)
    return key.startswith(info.key_prefix)


__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "DeepSeekProvider",
    "OpenRouterProvider",
    "ClaudeProvider",
    "GeminiProvider",
    "ProviderInfo",
    "create_provider",
    "create_provider_from_key",
    "detect_provider_type",
    "provider_info_list",
    "get_provider_info",
    "is_provider_supported",
    "validate_api_key",
]

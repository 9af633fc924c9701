"""Data models for Extendr configuration."""

from .provider import ProviderType, ProviderConfig
from .config import (
    AgentConfig,
    SandboxConfig,
    ServerConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    "ProviderType",
    "ProviderConfig",
    "AgentConfig",
    "SandboxConfig",
    "ServerConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]

"""
Configuration loader for Extendr.

Loads the unified YAML configuration with support for environment
variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import (
    AgentConfig,
    AppConfig,
    LangfuseConfig,
    LoggingConfig,
    ProviderConfig,
    ProviderType,
    SandboxConfig,
    ServerConfig,
)

logger = logging.getLogger(__name__)

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _parse_provider_config(data: dict) -> ProviderConfig:
    """Parse provider configuration from dict."""
    type_value = data.get("type") or ProviderType.OPENAI.value
    try:
        provider_type = ProviderType(str(type_value).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown provider type: {type_value}")

    return ProviderConfig(
        type=provider_type,
        api_key=data.get("api_key", "") or "",
        model=data.get("model", "") or "",
        base_url=data.get("base_url", "") or "",
        max_tokens=int(data.get("max_tokens") or 8192),
        temperature=float(data.get("temperature", 0.7)),
        timeout=float(data.get("timeout") or 120.0),
        proxy_url=data.get("proxy_url", "") or "",
        proxy_token=data.get("proxy_token", "") or "",
        site_url=data.get("site_url") or "http://localhost",
        app_name=data.get("app_name") or "Extendr",
    )


def _parse_agent_config(data: dict) -> AgentConfig:
    """Parse agent loop configuration from dict."""
    return AgentConfig(
        max_iterations=int(data.get("max_iterations", 20)),
        max_consecutive_errors=int(data.get("max_consecutive_errors", 3)),
        provider_timeout=float(data.get("provider_timeout") or 0.0),
        tool_batch_timeout=float(data.get("tool_batch_timeout") or 0.0),
        max_tool_workers=int(data.get("max_tool_workers", 8)),
        serialize_same_path=_parse_bool(data.get("serialize_same_path"), True),
        system_prompt_short=_parse_bool(data.get("system_prompt_short"), False),
        custom_instructions=data.get("custom_instructions", "") or "",
    )


def _parse_sandbox_config(data: dict) -> SandboxConfig:
    """Parse sandbox configuration from dict."""
    return SandboxConfig(
        root=data.get("root") or "./workspace",
        install_command=data.get("install_command", "npm install") or "",
        build_command=data.get("build_command", "npm run build") or "",
        preview_command=data.get("preview_command", "") or "",
        command_timeout=float(data.get("command_timeout") or 300.0),
        log_limit=int(data.get("log_limit", 1000)),
        echo_terminal=_parse_bool(data.get("echo_terminal"), False),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server configuration from dict."""
    return ServerConfig(
        host=data.get("host", "0.0.0.0"),
        port=int(data.get("port", 8000)),
        workers=int(data.get("workers", 1)),
        reload=_parse_bool(data.get("reload"), False),
        workspaces_root=data.get("workspaces_root") or "./workspaces",
    )


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(
        level=str(data.get("level") or "INFO").upper(),
    )


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key", "") or "",
        secret_key=data.get("secret_key", "") or "",
        host=data.get("host", "") or "",
        debug=_parse_bool(data.get("debug"), False),
    )


def validate_app_config(config: AppConfig) -> list[str]:
    """
    Validate an application configuration.

    Args:
        config: Configuration to validate

    Returns:
        List of validation warnings (empty if valid)
    """
    errors = []

    if config.agent.max_iterations <= 0:
        errors.append("agent.max_iterations must be positive")
    if config.agent.max_consecutive_errors <= 0:
        errors.append("agent.max_consecutive_errors must be positive")
    if config.agent.max_tool_workers <= 0:
        errors.append("agent.max_tool_workers must be positive")
    if config.agent.provider_timeout < 0 or config.agent.tool_batch_timeout < 0:
        errors.append("agent timeouts must not be negative")
    if config.sandbox.log_limit <= 0:
        errors.append("sandbox.log_limit must be positive")
    if not config.provider.api_key and not config.provider.proxy_url:
        errors.append(f"provider '{config.provider.type.value}': missing api_key")

    return errors


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses
              CONFIG_PATH env var or the default path (config/config.yaml).
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config is invalid
    """
    global _app_config

    if _app_config is not None and not reload:
        return _app_config

    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found at {config_path}. "
            f"Create one from config/config.yaml.template or set CONFIG_PATH env var."
        )

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Configuration file {config_path} is empty")
    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")

    raw_config = _substitute_env_vars_recursive(raw_config)

    app_config = AppConfig(
        version=str(raw_config.get("version", "1.0")),
        provider=_parse_provider_config(raw_config.get("provider") or {}),
        agent=_parse_agent_config(raw_config.get("agent") or {}),
        sandbox=_parse_sandbox_config(raw_config.get("sandbox") or {}),
        server=_parse_server_config(raw_config.get("server") or {}),
        logging=_parse_logging_config(raw_config.get("logging") or {}),
        langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
    )

    for error in validate_app_config(app_config):
        logger.warning(f"Config validation warning: {error}")

    _app_config = app_config

    logger.debug(
        "Configuration loaded: version=%s, provider=%s",
        app_config.version,
        app_config.provider.type.value,
    )

    return app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")

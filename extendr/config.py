"""
Configuration management for Extendr.

Uses config/config.yaml (or CONFIG_PATH) when present; otherwise builds
the configuration from environment variables with sensible defaults for
local development.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from .config_loader import DEFAULT_CONFIG_PATH, load_app_config
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

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() == "true"


def config_from_env() -> AppConfig:
    """Build an AppConfig from environment variables only."""
    return AppConfig(
        provider=ProviderConfig(
            type=ProviderType(os.getenv("EXTENDR_PROVIDER", "openai").strip().lower()),
            api_key=os.getenv("EXTENDR_API_KEY", ""),
            model=os.getenv("EXTENDR_MODEL", ""),
            base_url=os.getenv("EXTENDR_BASE_URL", ""),
            max_tokens=int(os.getenv("EXTENDR_MAX_TOKENS", "8192")),
            temperature=float(os.getenv("EXTENDR_TEMPERATURE", "0.7")),
            timeout=float(os.getenv("EXTENDR_PROVIDER_TIMEOUT", "120")),
            proxy_url=os.getenv("GEMINI_PROXY_URL", ""),
            proxy_token=os.getenv("GEMINI_PROXY_TOKEN", ""),
        ),
        agent=AgentConfig(
            max_iterations=int(os.getenv("EXTENDR_MAX_ITERATIONS", "20")),
            max_consecutive_errors=int(os.getenv("EXTENDR_MAX_CONSECUTIVE_ERRORS", "3")),
            provider_timeout=float(os.getenv("EXTENDR_WAIT_TIMEOUT", "0")),
            tool_batch_timeout=float(os.getenv("EXTENDR_TOOL_BATCH_TIMEOUT", "0")),
            max_tool_workers=int(os.getenv("EXTENDR_MAX_TOOL_WORKERS", "8")),
            system_prompt_short=_env_bool("EXTENDR_SHORT_PROMPT"),
        ),
        sandbox=SandboxConfig(
            root=os.getenv("EXTENDR_WORKSPACE", "./workspace"),
            install_command=os.getenv("EXTENDR_INSTALL_COMMAND", "npm install"),
            build_command=os.getenv("EXTENDR_BUILD_COMMAND", "npm run build"),
            preview_command=os.getenv("EXTENDR_PREVIEW_COMMAND", ""),
            command_timeout=float(os.getenv("EXTENDR_COMMAND_TIMEOUT", "300")),
        ),
        server=ServerConfig(
            host=os.getenv("SERVER_HOST", "0.0.0.0"),
            port=int(os.getenv("SERVER_PORT", "8000")),
            workers=int(os.getenv("SERVER_WORKERS", "1")),
            reload=_env_bool("SERVER_RELOAD"),
            workspaces_root=os.getenv("EXTENDR_WORKSPACES_ROOT", "./workspaces"),
        ),
        logging=LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO").upper()),
        langfuse=LangfuseConfig(
            public_key=os.getenv("LANGFUSE_PUBLIC_KEY", ""),
            secret_key=os.getenv("LANGFUSE_SECRET_KEY", ""),
            host=os.getenv("LANGFUSE_HOST", ""),
            debug=_env_bool("LANGFUSE_DEBUG"),
        ),
    )


def get_config() -> AppConfig:
    """Get the application configuration, preferring the YAML file."""
    config_path = os.environ.get("CONFIG_PATH")
    if config_path or Path(DEFAULT_CONFIG_PATH).exists():
        return load_app_config(config_path)
    return config_from_env()


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging with the shared format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

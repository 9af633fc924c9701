"""
Configuration models for Extendr.

Defines dataclasses for the unified YAML configuration file.
"""

from dataclasses import dataclass, field

from .provider import ProviderConfig


@dataclass
class AgentConfig:
    """Budgets and timeouts for the orchestration loop."""
    max_iterations: int = 20
    max_consecutive_errors: int = 3
    provider_timeout: float = 0.0  # seconds; 0 waits indefinitely
    tool_batch_timeout: float = 0.0  # seconds; 0 waits indefinitely
    max_tool_workers: int = 8
    serialize_same_path: bool = True
    system_prompt_short: bool = False
    custom_instructions: str = ""


@dataclass
class SandboxConfig:
    """Configuration for the local directory-backed sandbox."""
    root: str = "./workspace"
    install_command: str = "npm install"
    build_command: str = "npm run build"
    preview_command: str = ""
    command_timeout: float = 300.0
    log_limit: int = 1000
    echo_terminal: bool = False


@dataclass
class ServerConfig:
    """Configuration for the FastAPI server."""
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False
    workspaces_root: str = "./workspaces"


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = ""
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml
    or derived from the environment.
    """
    version: str = "1.0"
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        """Shortcut for logging.level."""
        return self.logging.level

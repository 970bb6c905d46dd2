"""
Application Configuration

Pydantic-based settings management using environment variables.
Each concern gets its own settings class with an env prefix; the
top-level Settings object nests them and is cached by get_settings().

Usage:
    from sqlstudio.config import get_settings

    settings = get_settings()
    print(settings.llm.default_provider)
    print(settings.agent.max_iterations)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AnyUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ProviderName = Literal["bedrock", "anthropic", "openai", "local"]


class LLMSettings(BaseSettings):
    """LLM provider configuration.

    Credentials set here are defaults; a stream request may carry its own.
    """

    default_provider: ProviderName = Field(
        default="bedrock", description="Provider used when a request does not name one"
    )

    # Anthropic
    anthropic_api_key: str | None = Field(None, description="Anthropic API key", min_length=20)
    anthropic_model: str = Field(
        default="claude-sonnet-4-5-20250929", description="Anthropic model id"
    )

    # OpenAI
    openai_api_key: str | None = Field(None, description="OpenAI API key", min_length=20)
    openai_model: str = Field(default="gpt-4o", description="OpenAI model id")

    # AWS Bedrock
    aws_access_key_id: str | None = Field(None, description="AWS access key id")
    aws_secret_access_key: str | None = Field(None, description="AWS secret access key")
    aws_region: str = Field(default="us-east-1", description="AWS region for Bedrock")
    bedrock_model: str = Field(
        default="us.anthropic.claude-sonnet-4-5-20250929-v1:0",
        description="Bedrock inference profile or model id",
    )

    # OpenAI-compatible local servers (Ollama, vLLM, Groq)
    local_base_url: str = Field(
        default="http://localhost:11434/v1", description="OpenAI-compatible base URL"
    )
    local_model: str = Field(default="llama3.1:8b", description="Local model name")
    local_api_key: str = Field(default="ollama", description="API key sent to the local server")

    # Generation parameters
    temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=4096, gt=0, description="Maximum tokens per model turn")
    connect_timeout: float = Field(default=30.0, gt=0, description="Connect timeout in seconds")
    timeout: float = Field(default=120.0, gt=0, description="Response timeout in seconds")
    max_retries: int = Field(
        default=3, ge=0, le=10, description="Client-level retries for connection failures"
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("openai_api_key")
    @classmethod
    def validate_openai_key(cls, v: str | None) -> str | None:
        """Validate OpenAI API key format."""
        if v and not v.startswith("sk-"):
            raise ValueError("OpenAI API key must start with 'sk-'")
        return v

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_anthropic_key(cls, v: str | None) -> str | None:
        """Validate Anthropic API key format."""
        if v and not v.startswith("sk-ant-"):
            raise ValueError("Anthropic API key must start with 'sk-ant-'")
        return v


class AgentSettings(BaseSettings):
    """Agent loop limits and tool-result shaping."""

    max_iterations: int = Field(
        default=10, ge=1, le=50, description="Maximum model/tool round-trips per request"
    )
    heartbeat_interval: float = Field(
        default=5.0, gt=0, description="Seconds between heartbeat events"
    )
    tool_result_max_bytes: int = Field(
        default=50_000, gt=0, description="Serialized size above which tool results are truncated"
    )
    truncate_max_tables: int = Field(default=10, gt=0)
    truncate_max_columns: int = Field(default=20, gt=0)
    truncate_max_rows: int = Field(default=100, gt=0)
    preview_rows: int = Field(
        default=10, gt=0, description="Rows attached to tool_response events for UI preview"
    )
    schema_context_max_tables: int = Field(
        default=20, gt=0, description="Tables described in the system prompt"
    )
    force_tool_use: bool = Field(
        default=True,
        description="Force a tool call on the first iteration when a connection is bound",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_",
        env_file=".env",
        extra="ignore",
    )


class DatabaseSettings(BaseSettings):
    """Target database connections."""

    db_type: Literal["postgresql", "clickhouse", "mysql"] | None = Field(
        default=None,
        description="Type of the DATABASE_URL connection (inferred from the URL when unset)",
        validation_alias="DATABASE_TYPE",
    )
    url: AnyUrl | None = Field(
        None,
        description="Fallback connection registered under the id 'env'",
    )
    connections_file: Path = Field(
        default=Path("config/connections.yaml"),
        description="YAML file listing named connections",
    )
    pool_size: int = Field(default=5, gt=0, le=20, description="Connection pool size")
    query_timeout: int = Field(default=30, gt=0, description="Query timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | AnyUrl | None) -> str | AnyUrl | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: AnyUrl | None) -> AnyUrl | None:
        """Validate supported database URL schemes."""
        if v is None:
            return v
        parsed = urlparse(str(v))
        scheme = parsed.scheme.split("+")[0].lower() if parsed.scheme else ""
        if scheme not in {"postgres", "postgresql", "clickhouse", "mysql"}:
            raise ValueError("DATABASE_URL must use postgresql, clickhouse, or mysql scheme.")
        if not parsed.hostname:
            raise ValueError("DATABASE_URL must include a host.")
        return v


class ToolsSettings(BaseSettings):
    """Tool catalog configuration."""

    policy_path: str = Field(
        default="config/tools.yaml",
        description="Path to tool policy configuration",
    )
    read_only_sql: bool = Field(
        default=False,
        description="Reject non-read statements in execute_sql_query",
    )

    model_config = SettingsConfigDict(
        env_prefix="TOOLS_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stderr only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name
        DEBUG: Enable debug mode
        API_HOST / API_PORT: Bind address for `sqlstudio serve`
        LLM_*: Provider configuration (see LLMSettings)
        AGENT_*: Loop limits (see AgentSettings)
        DATABASE_*: Target connections (see DatabaseSettings)
        TOOLS_*: Tool policy (see ToolsSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.agent.max_iterations
        10
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(default="SQL Studio", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, gt=0, le=65535, description="API server port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed to open the event stream",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    tools: ToolsSettings = Field(default_factory=ToolsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    def model_post_init(self, __context) -> None:
        """Configure logging and record what was loaded."""
        self.logging.configure()
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "llm_provider": self.llm.default_provider,
                "max_iterations": self.agent.max_iterations,
                "read_only_sql": self.tools.read_only_sql,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("SQLSTUDIO_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are read once per process; call clear_settings_cache() after
    changing environment variables (tests do this).
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()

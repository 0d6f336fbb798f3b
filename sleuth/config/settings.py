"""
Global settings from environment variables.
"""

from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SleuthSettings(BaseSettings):
    """
    Global configuration loaded from environment variables.

    Environment variables should be prefixed with SLEUTH_
    Example: SLEUTH_DEBUG=true, SLEUTH_HEARTBEAT_INTERVAL=15
    """

    model_config = SettingsConfigDict(
        env_prefix="SLEUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        protected_namespaces=(),
    )

    # Core settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Model Provider Settings
    # The providers' own variable names are accepted as well
    openai_api_key: SecretStr | None = Field(
        default=None, validation_alias=AliasChoices("SLEUTH_OPENAI_API_KEY", "OPENAI_API_KEY")
    )
    openai_base_url: str | None = Field(
        default=None, validation_alias=AliasChoices("SLEUTH_OPENAI_BASE_URL", "OPENAI_BASE_URL")
    )
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("SLEUTH_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
    )
    anthropic_base_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SLEUTH_ANTHROPIC_BASE_URL", "ANTHROPIC_BASE_URL"),
    )

    # Run orchestration
    recursion_limit: int = Field(default=150, ge=1)
    tool_error_max_chars: int = Field(default=500, ge=1)
    query_attr_max_chars: int = Field(default=200, ge=1)
    url_attr_max_chars: int = Field(default=300, ge=1)

    # Subagents
    subagent_context_messages: int = Field(default=5, ge=0)
    subagent_flush_delay: float = Field(default=0.1, ge=0.0)

    # Transport keep-alive (seconds between ping events on an idle stream)
    heartbeat_interval: float = Field(default=30.0, gt=0.0)


# Global settings instance (singleton)
settings = SleuthSettings()


__all__ = ["SleuthSettings", "settings"]

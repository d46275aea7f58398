"""Configuration management for smart-todo-agent."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging_utils import configure_logging

Backend = Literal["remote", "local"]

DEFAULT_REMOTE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_REMOTE_MODEL = "gemini-2.5-flash"
DEFAULT_LOCAL_BASE_URL = "http://127.0.0.1:11434"
DEFAULT_LOCAL_MODEL = "qwen2.5-3b-instruct"


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SMART_TODO_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Backend selection
    backend: Backend = Field(default="remote", description="Inference backend: remote or local")

    # Remote hosted API
    remote_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SMART_TODO_REMOTE_API_KEY", "GEMINI_API_KEY", "GOOGLE_API_KEY"),
        description="Bearer credential for the remote API",
    )
    remote_base_url: str = Field(default=DEFAULT_REMOTE_BASE_URL, description="Remote API base URL")
    remote_model: str = Field(default=DEFAULT_REMOTE_MODEL, description="Remote model name")
    remote_function_calling_mode: Literal["AUTO", "ANY", "NONE"] = Field(
        default="ANY", description="Gemini functionCallingConfig mode"
    )

    # Local llama.cpp server
    local_base_url: str = Field(default=DEFAULT_LOCAL_BASE_URL, description="Local server base URL")
    local_model: str = Field(default=DEFAULT_LOCAL_MODEL, description="Model identifier sent to the local server")
    local_tool_choice: Literal["auto", "required", "none"] = Field(default="auto")
    local_temperature: float = Field(default=0.7, ge=0)
    local_max_tokens: int = Field(default=2048, ge=1)

    # Session defaults
    max_rounds: int = Field(default=8, ge=1, description="Maximum number of rounds per session")
    request_timeout: float = Field(default=120.0, gt=0, description="Per-attempt request timeout in seconds")
    retry_attempts: int = Field(default=2, ge=0, description="Retries after the first attempt")
    retry_backoff: float = Field(default=0.5, ge=0, description="Initial backoff in seconds")
    retry_backoff_max: float = Field(default=8.0, ge=0, description="Backoff ceiling in seconds")
    reprompt_on_text: bool = Field(default=True, description="Nudge the model after a text-only reply")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")
    log_profile: Literal["default", "cli"] = Field(default="default", description="Log sink profile")

    @property
    def resolved_api_key(self) -> str | None:
        return self.remote_api_key or None


class SessionConfig(BaseModel):
    """Per-session options recognized by ``ConversationDriver.run``."""

    model_config = ConfigDict(frozen=True)

    max_rounds: int = Field(default=8, ge=1)
    backend: Backend = "remote"
    request_timeout: float = Field(default=120.0, gt=0)
    retry_attempts: int = Field(default=2, ge=0)
    retry_backoff: float = Field(default=0.5, ge=0)
    retry_backoff_max: float = Field(default=8.0, ge=0)
    reprompt_on_text: bool = True

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> SessionConfig:
        values: dict[str, Any] = {
            "max_rounds": settings.max_rounds,
            "backend": settings.backend,
            "request_timeout": settings.request_timeout,
            "retry_attempts": settings.retry_attempts,
            "retry_backoff": settings.retry_backoff,
            "retry_backoff_max": settings.retry_backoff_max,
            "reprompt_on_text": settings.reprompt_on_text,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)


def get_settings(**overrides: Any) -> Settings:
    """Get application settings and configure logging from them.

    Args:
        **overrides: Explicit values taking precedence over the environment

    Returns:
        Settings instance
    """
    settings = Settings(**overrides)

    configure_logging(profile=settings.log_profile, level=settings.log_level)

    return settings

"""
Configuration settings for ScopeFlow.
All sensitive values are loaded from environment variables.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "ScopeFlow"
    debug: bool = Field(default=False)
    environment: str = Field(default="production")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    public_base_url: str = Field(default="http://localhost:3000")

    # Database (PostgreSQL)
    database_url: str = Field(default="")
    database_echo: bool = Field(default=False)
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30)
    db_pool_recycle: int = Field(default=1800)

    # Redis (empty = in-memory rate limiting, single instance only)
    redis_url: str = Field(default="")

    # LLM completion service (OpenAI-compatible chat completions API)
    llm_api_key: str = Field(default="")
    llm_base_url: str = Field(default="https://api.openai.com/v1")
    llm_model: str = Field(default="gpt-4o")
    llm_timeout_seconds: float = Field(default=60.0)
    llm_max_tokens: int = Field(default=2000)
    llm_timeline_max_tokens: int = Field(default=8000)
    llm_form_max_tokens: int = Field(default=4096)

    # Client chat
    chat_rate_limit_requests: int = Field(default=10)
    chat_rate_limit_window_seconds: int = Field(default=60)
    chat_history_limit: int = Field(default=20)
    chat_message_max_length: int = Field(default=5000)

    # Email delivery (HTTP email API, Resend-compatible)
    email_api_url: str = Field(default="https://api.resend.com/emails")
    email_api_key: str = Field(default="")
    email_from: str = Field(default="ScopeFlow <noreply@scopeflow.app>")

    # Pricing defaults when an organization has no settings row
    default_hourly_rate: Decimal = Field(default=Decimal("150"))
    default_hours_per_week: int = Field(default=40)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings

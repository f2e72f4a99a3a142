"""
Configuration management for Intent Ledger.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Intent Ledger")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=1)

    # Database
    database_url: str = Field(default="sqlite:///./intent_ledger.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="'json' or 'console'")

    # Eventing sink (unset BRIDGE_URL = events are dropped)
    bridge_url: Optional[str] = Field(default=None)
    bridge_app_id: str = Field(default="intent-ledger")
    event_topic_prefix: str = Field(default="pm.")

    # AI / memory provider
    ai_provider_mode: str = Field(
        default="standalone",
        description="'brain' (memory + completion), 'standalone' (completion only) or 'none'",
    )
    brain_url: Optional[str] = Field(default=None)
    brain_api_key: Optional[str] = Field(default=None)
    llm_base_url: str = Field(default="https://openrouter.ai/api/v1")
    llm_api_key: Optional[str] = Field(default=None)
    llm_model: str = Field(default="openai/gpt-4o-mini")
    http_timeout_seconds: float = Field(default=10.0)

    # Best-effort side effects
    side_effect_workers: int = Field(default=4)

    # Tenant/user fallback when no identity headers are sent
    dev_tenant_id: str = Field(default="dev-tenant")
    dev_user_id: str = Field(default="dev-user")

    # Assumption decay
    assumption_stale_days: int = Field(default=30)
    assumption_low_confidence: float = Field(default=0.3)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings

"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="DAGFLOW_",
    )

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    log_level: Literal["debug", "info", "warning", "error"] = "info"

    # Application settings
    app_name: str = "dagflow"
    app_version: str = "0.1.0"
    debug: bool = False

    # CORS settings
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Execution settings
    max_run_records: int = 100
    default_retry_delay: int = 1000
    max_bundle_depth: int = 5
    # Waits at or below this are slept in-process, longer ones park the run
    inline_sleep_max_seconds: float = 5.0
    http_timeout_seconds: float = 30.0

    # Realtime settings
    realtime_secret: str = "dagflow-dev-secret"
    realtime_token_ttl_seconds: int = 300
    realtime_queue_size: int = 256

    # External services
    llm_base_url: str | None = None
    llm_api_key: str | None = None
    crm_base_url: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()

"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: the public dog API works out-of-the-box
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Dog API
    dog_api_base_url: str = "https://dog.ceo/api"

    @field_validator("dog_api_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Request paths are joined with '/', so the base must not end with one."""
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    http_timeout_seconds: float = 15.0
    http_max_retries: int = 3
    http_base_delay_ms: int = 500
    http_max_delay_ms: int = 10_000

    # Vision classifier (Anthropic)
    anthropic_api_key: str = "sk-ant-placeholder"
    vision_model: str = "claude-sonnet-4-5"
    vision_max_labels: int = 5
    vision_max_tokens: int = 1024
    vision_timeout_seconds: int = 60

    # Observability
    log_level: str = "WARNING"
    log_format: str = "text"


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - Routine gating thresholds and plan limits are settings, not literals in code

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - Routine policy (7 days / 5 logs / 60-day window) is tuned per deployment
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def async_database_url(url: str) -> str:
    """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://orbit:orbit@db:5432/orbit"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v):
        return async_database_url(v) if isinstance(v, str) else v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Anthropic (completion provider)
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_model: str = "claude-haiku-4-5-20251001"
    anthropic_max_tokens: int = 4096
    anthropic_temperature: float = 0.1
    anthropic_timeout_seconds: int = 60
    anthropic_max_retries: int = 3
    anthropic_base_delay_ms: int = 2000
    anthropic_backoff_jitter: float = 0.0

    # Routine analysis policy
    routine_min_history_days: int = 7
    routine_min_logs_per_habit: int = 5
    routine_analysis_window_days: int = 60

    # Action plan limits
    plan_max_actions: int = 20
    plan_max_destructive_actions: int = 3

    # Prompt bounds
    prompt_max_habits: int = 50
    prompt_max_tags: int = 30
    prompt_max_facts: int = 30

    # Enrichment
    enrichment_timeout_seconds: float = 20.0

    # Uploads
    image_max_bytes: int = 20 * 1024 * 1024

    # Development identity (stands in for authentication)
    dev_user_id: str = "a1b2c3d4-e5f6-7890-abcd-ef1234567890"

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()

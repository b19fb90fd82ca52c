"""Application configuration from environment."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """App settings loaded from env / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MATHTRAINER_",
        extra="ignore",
    )

    app_name: str = "Math Trainer Engine"
    debug: bool = False
    log_level: str = "INFO"

    # Database (async driver; alembic converts to a sync url)
    database_url: str = "sqlite+aiosqlite:///./mathtrainer.db"

    # Auth cookie issued by the external auth service; we only verify it
    secret_key: str = "change-me-in-production-use-env"
    auth_cookie_name: str = "mt_auth"
    auth_cookie_max_age: int = 60 * 60 * 24 * 14  # 14 days

    # Client-side flow
    progress_cache_ttl_sec: float = 60.0
    record_timeout_sec: float = 10.0

    # Stats projections
    stats_week_days: int = 7
    streak_lookback_days: int = 30


def get_settings() -> Settings:
    return Settings()


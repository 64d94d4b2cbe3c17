"""
Application configuration.

Uses pydantic-settings to load values from environment variables / .env file.
Nothing here is required: every field has a local-development default.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore unknown env vars
    )

    # ── Draft storage ─────────────────────────────────────────
    # Any SQLAlchemy URL with a synchronous driver.
    database_url: str = "sqlite:///./deal_wizard.db"
    storage_key: str = "deal_wizard_v1"   # default draft key when none is given

    # ── HTTP API ──────────────────────────────────────────────
    api_host: str = "127.0.0.1"
    api_port: int = 8080
    max_open_drafts: int = 256            # controllers kept in memory (LRU)

    # ── App ───────────────────────────────────────────────────
    log_level: str = "INFO"
    debug: bool = False                   # echo SQL statements when true


# Singleton — import this wherever config is needed
settings = Settings()

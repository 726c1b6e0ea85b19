"""
Centralized application configuration.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Outreach Pipeline CRM"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./data/outreach.db"

    # Comma separated list of extra CORS origins
    cors_origins: str = ""

    # Follow-up rules: insert the default cadence table when the table is empty
    seed_default_rules: bool = True

    # Bulk operations
    bulk_recompute_workers: int = 4       # 1 = recompute inline, no thread pool
    recompute_max_attempts: int = 2       # per contact, no backoff between attempts
    bulk_timeout_seconds: Optional[float] = None  # None = wait for every recompute

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get the cached application settings."""
    return Settings()

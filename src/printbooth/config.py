"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    photos_bucket: str = "market_photos"
    printnode_base_url: str = "https://api.printnode.com"
    poll_interval_seconds: float = 3.0
    processed_cache_dir: Path = Path(".printbooth/processed")
    helper_timeout_seconds: float = 30.0
    sheet_caption: str | None = None
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

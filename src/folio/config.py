"""Application configuration."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    content_dir: Path = Path("content")
    debug: bool = False
    site_title: str = "Folio"
    base_url: str = "http://localhost:8000"
    page_size: int = 10
    feed_limit: int = 20
    bundle_filename: str = "index.md"
    read_timeout: float = 5.0
    read_attempts: int = 3
    read_backoff: float = 0.1
    workers: int = 8
    watch: bool = False
    watch_interval: float = 1.0
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FOLIO_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()

"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = Field(None, description="SQLAlchemy URL (leave empty for SQLite)")
    database_path: str = Field("./data/rustnews.db", description="SQLite file path")

    # Import pipeline
    import_interval_minutes: int = Field(60, description="Minutes between import passes")
    fetch_timeout: float = Field(15.0, description="Per-request feed fetch timeout (seconds)")
    max_concurrent_fetches: int = Field(4, description="Max sources fetched at once")
    user_agent: str = Field(f"rustnews/{__version__}", description="User-Agent for feed requests")

    # Reader
    recency_hours: int = Field(24, description="Default recency window for the feed (hours)")

    # Server
    host: str = Field("127.0.0.1", description="Server bind host")
    port: int = Field(9006, description="Server port")

    # Scheduler
    enable_scheduler: bool = Field(True, description="Run the import scheduler inside the server")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Output logs as JSON")

    @field_validator("import_interval_minutes")
    @classmethod
    def check_interval(cls, v: int) -> int:
        """The scheduler needs a positive tick."""
        if v < 1:
            raise ValueError(f"import_interval_minutes must be >= 1, got {v}")
        return v

    @field_validator("max_concurrent_fetches")
    @classmethod
    def check_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_concurrent_fetches must be >= 1, got {v}")
        return v

    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL (explicit URL or SQLite file)."""
        if self.database_url:
            return self.database_url

        db_path = Path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        return f"sqlite:///{db_path.absolute()}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache (useful for tests)."""
    get_settings.cache_clear()

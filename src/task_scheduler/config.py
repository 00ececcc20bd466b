"""Configuration for the scheduler API and the worker."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from the environment and an optional ``.env`` file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./tasks.db",
        description="SQLAlchemy async URL of the task store, e.g. postgresql+psycopg://user:pw@host/db",
    )
    poll_interval: float = Field(default=1.0, gt=0, description="Seconds a worker waits after an empty poll")
    poll_jitter: float = Field(default=0.25, ge=0, description="Maximum random deviation added to poll_interval")
    max_backoff: float = Field(default=30.0, gt=0, description="Upper bound for the store-unavailable backoff")
    api_host: str = Field(default="127.0.0.1", description="Scheduler API bind address")
    api_port: int = Field(default=3000, description="Scheduler API port")
    log_level: str = Field(default="INFO", description="Root log level")


@lru_cache()
def get_settings() -> Settings:
    return Settings()

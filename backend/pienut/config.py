"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    APP_NAME: str = "Pienut"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 9859
    APP_DEBUG: bool = False
    LOG_LEVEL: str = "info"
    CORS_ORIGINS: list[str] = ["*"]

    # Redis (empty URL → in-memory record store)
    REDIS_URL: str = ""
    RECORD_KEY_PREFIX: str = "pienut"

    # Uniqueness checks
    UNIQUE_CHECK_TIMEOUT_SECONDS: float = 5.0
    UNIQUE_CHECK_MAX_ATTEMPTS: int = 3
    UNIQUE_CHECK_BACKOFF_SECONDS: float = 0.1

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./medtracker.db"
    DB_POOL_SIZE: int = 5

    # Reminders
    OVERDUE_GRACE_MINUTES: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Environment
    ENVIRONMENT: str = "dev"


@lru_cache
def get_settings() -> Settings:
    return Settings()

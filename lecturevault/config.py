"""
Application configuration using Pydantic Settings
"""
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """
    # Database
    DATABASE_URL: str = "sqlite:///./lecturevault.db"
    SQL_ECHO: bool = False

    # Application
    DEBUG: bool = False

    # Reminders
    SCHEDULER_ENABLED: bool = True
    REMINDER_POLL_SECONDS: int = 60
    REMINDER_GRACE_MINUTES: int = 60  # reminders older than this are marked without notifying

    # Recurrence
    EXPANSION_MAX_EMPTY_PERIODS: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance (singleton)
    """
    return Settings()

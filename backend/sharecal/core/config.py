from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    PROJECT_NAME: str = "Shared Calendar API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "local"
    DATABASE_URL: str = "sqlite:///./sharecal.db"
    SQL_ECHO: bool = False
    LOG_LEVEL: str = "INFO"
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Sharing and reminders
    DEFAULT_PERMISSION: str = "VIEW"
    DEFAULT_REMINDER_TYPE: str = "EVENT_START"
    UPCOMING_REMINDER_WINDOW_MINUTES: int = 60

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: List[str] | str) -> List[str]:
        """Allow both comma-separated strings and list inputs."""
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

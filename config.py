from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "Video Sharing Backend"

    # MongoDB
    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "vidshare"

    # Session credentials
    ACCESS_TOKEN_SECRET: str = "change-me-access"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_SECRET: str = "change-me-refresh"
    REFRESH_TOKEN_EXPIRE_DAYS: int = 10
    COOKIE_SECURE: bool = True

    CORS_ORIGINS: List[str] = ["*"]

    # Media storage
    UPLOAD_DIR: str = "uploads"
    MEDIA_URL_PREFIX: str = "/static"
    TEMP_DIR: str = "temp_uploads"

    LOG_LEVEL: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()

"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings
from starlette.requests import Request


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Video Hosting API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api"
    DEBUG: bool = False
    LOG_JSON: bool = True

    # Database - REQUIRED
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 5
    DATABASE_ECHO: bool = False

    # Redis (Celery broker) - only needed with TRANSCODE_EXECUTOR=celery
    REDIS_URL: str = "redis://localhost:6379/0"

    # Security - REQUIRED (no defaults for sensitive values)
    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: list[str] = []

    # Content storage
    CONTENT_ROOT: str = "./uploads"
    MAX_UPLOAD_SIZE: int = 8 * 1024 * 1024 * 1024  # 8 GB

    # Transcoding
    # Comma separated "name:height:bitrate" entries, highest quality first.
    TRANSCODE_PROFILES: str = "1080p:1080:4000k,720p:720:2500k,480p:480:1000k"
    TRANSCODE_OUTPUT_EXTENSION: str = "mp4"
    TRANSCODE_TASK_TIMEOUT_SECONDS: float = 1800.0
    TRANSCODE_EXECUTOR: Literal["inprocess", "celery"] = "inprocess"
    FFMPEG_PATH: str = "ffmpeg"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings loaded from the environment."""
    return Settings()


def get_request_settings(request: Request) -> Settings:
    """Settings of the application serving ``request``."""
    return request.app.state.settings

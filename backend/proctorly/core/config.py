"""
Proctorly Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Proctorly"
    PROCTORLY_ENV: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./proctorly.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,https://localhost:3000"

    # Recordings
    MAX_UPLOAD_SIZE_MB: int = 500
    UPLOAD_DIR: str = "uploads/videos"
    MEDIA_TYPE: str = "video/webm"
    STREAM_CHUNK_SIZE: int = 64 * 1024

    # Counter compare-and-swap attempts before giving up
    COUNTER_UPDATE_MAX_RETRIES: int = 50

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def upload_path(self) -> Path:
        # Relative to the working directory
        p = Path(self.UPLOAD_DIR).expanduser().resolve()
        p.mkdir(parents=True, exist_ok=True)
        return p

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()

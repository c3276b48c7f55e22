import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Client Gallery"
    ADMIN_PASSWORD: str = "admin123"

    # local: durable directory, temp: wiped between restarts, supabase: hosted bucket
    STORAGE_BACKEND: Literal["local", "temp", "supabase"] = "local"
    UPLOAD_DIR: Path = Path("uploads")
    TEMP_UPLOAD_DIR: Path = Path(tempfile.gettempdir()) / "client-gallery"

    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_BUCKET: str = "photos"

    DATABASE_URL: str = "sqlite+aiosqlite:///./gallery.db"

    MAX_UPLOAD_BYTES: Optional[int] = Field(default=None, gt=0)
    PUBLIC_BASE_URL: Optional[str] = None
    MEDIA_ROUTE: str = "/api/v1/photos"
    NOT_FOUND_DEBUG: bool = True

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_TO_FILE: bool = False
    LOG_DIR: Path = Path("logs")

    METRICS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def supabase_key(self) -> Optional[str]:
        """Service-role key when present, otherwise the anon key."""
        return self.SUPABASE_SERVICE_ROLE_KEY or self.SUPABASE_ANON_KEY


@lru_cache
def get_settings() -> Settings:
    return Settings()

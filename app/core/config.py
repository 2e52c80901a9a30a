from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Upstream
    NASA_API_KEY: str = ""
    NASA_API_BASE_URL: str = "https://api.nasa.gov"
    EPIC_ARCHIVE_BASE_URL: str = "https://epic.gsfc.nasa.gov"

    # Content store
    CACHE_DIR: Path = Path("./image_cache")
    PUBLIC_BASE_URL: str = ""

    # Network
    USER_AGENT: str = "SkyCache/1.0"
    API_TIMEOUT_SECONDS: float = 15.0
    IMAGE_TIMEOUT_SECONDS: float = 30.0
    HEAD_TIMEOUT_SECONDS: float = 5.0
    API_RETRY_ATTEMPTS: int = 3
    IMAGE_RETRY_ATTEMPTS: int = 2
    RETRY_BASE_DELAY_SECONDS: float = 1.0
    REQUEST_DEADLINE_SECONDS: float = 25.0

    # Earth-image resolution breadth
    EPIC_AVAILABLE_DATES: int = 3
    EPIC_MAX_RECORDS: int = 2

    # App
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "*"

    @property
    def origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def has_api_key(self) -> bool:
        return bool(self.NASA_API_KEY.strip())


@lru_cache
def get_settings() -> Settings:
    """Build the process-wide settings once, at startup."""
    return Settings()

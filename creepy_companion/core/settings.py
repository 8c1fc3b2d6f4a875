# creepy_companion/core/settings.py
import os
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "Creepy Companion"
    API_V1_STR: str = "/api/v1"

    LOG_LEVEL: str = "INFO"
    ENV_TYPE: str = "dev"

    TICK_INTERVAL_MS: int = 1000  # 1000 ms of real time = 1 game-minute

    STORAGE_BACKEND: str = "file"  # file | memory | mongo
    STORAGE_PATH: str = os.path.join(os.path.expanduser("~"), ".creepy_companion")
    STORAGE_KEY: str = "creepy-companion-storage"
    STORAGE_QUOTA_BYTES: Optional[int] = 5_000_000
    LOG_TRIM_LIMIT: int = 50

    MONGO_CONNECTION_URI: Optional[str] = None
    MONGO_DATABASE_NAME: str = "creepy_companion"
    MONGO_COLLECTION: str = "snapshots"

    NARRATIVE_API_URL: str = "http://localhost:3000/api/chat"
    SOUND_API_URL: str = "http://localhost:3000/api/selectSound"
    NARRATIVE_TIMEOUT_SECONDS: float = 10.0
    NARRATIVE_RETRY_DELAY_SECONDS: float = 1.0

    model_config = SettingsConfigDict(env_file=".env", extra="ignore",
                                      case_sensitive=False)  # case_sensitive=False for env vars


settings = Settings()

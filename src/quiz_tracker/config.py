"""Application settings loaded from the environment."""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_PATH = str(Path.home() / ".quiz_tracker" / "quiz.db")


class Settings(BaseSettings):
    """Settings for the quiz tracker, overridable with QUIZ_TRACKER_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="QUIZ_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    db_path: str = Field(default=DEFAULT_DB_PATH, description="SQLite database file")
    quiz_size: int = Field(default=5, gt=0, description="Maximum questions per quiz")
    store_timeout: float = Field(default=5.0, gt=0, description="Seconds to wait on a locked database")
    update_retries: int = Field(default=3, ge=0, description="Retries after a concurrent update conflict")
    tokens_file: Optional[str] = Field(default=None, description="YAML file mapping bearer tokens to users")
    local_user_id: str = Field(default="local", description="User id for the terminal client")
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""NoteEase configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

NOTES_KEY = "noteease-data"
THEME_KEY = "noteease-theme"
CATEGORIES_KEY = "noteease-categories"


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "NOTEEASE_",
    }

    # Storage engine
    storage_backend: Literal["memory", "file", "redis"] = "file"
    storage_path: Path = Path("noteease_data.json")
    redis_url: str = "redis://localhost:6379"
    key_prefix: str = ""
    max_record_bytes: int = 2 * 1024 * 1024  # Android CursorWindow size

    # Persistence scheduling
    write_mode: Literal["coalesce", "fire_and_forget"] = "coalesce"

    # Logging
    log_level: str = "INFO"

    @property
    def notes_key(self) -> str:
        return f"{self.key_prefix}{NOTES_KEY}"

    @property
    def theme_key(self) -> str:
        return f"{self.key_prefix}{THEME_KEY}"

    @property
    def categories_key(self) -> str:
        return f"{self.key_prefix}{CATEGORIES_KEY}"


settings = Settings()

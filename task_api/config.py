"""Settings loaded from environment variables (and an optional .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "mongodb://localhost:27017"
    database_name: str = "task_manager"
    log_level: str = "INFO"
    log_file: Optional[str] = None
    default_page_size: int = 20
    max_page_size: int = 2000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 8000


def load_settings() -> Settings:
    """Build a Settings object from the current environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "task_manager"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("LOG_FILE") or None,
        default_page_size=max(1, _env_int("DEFAULT_PAGE_SIZE", 20)),
        max_page_size=max(1, _env_int("MAX_PAGE_SIZE", 2000)),
        cors_origins=_env_list("CORS_ORIGINS", ["*"]),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8000),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""
    return load_settings()

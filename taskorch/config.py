"""Runtime settings for taskorch, read from the environment (.env supported)."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    database_url: str
    debug: bool
    log_level: str
    db_pool_size: int
    db_max_overflow: int
    db_pool_timeout_sec: int
    deadline_lead_hours: int
    consistency_window_days: int
    enforce_max_occurrences: bool


def get_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./taskorch.db"),
        debug=_env_bool("DEBUG", "False"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        # Pool sizing only applies to non-SQLite URLs
        db_pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "5")),
        db_pool_timeout_sec=int(os.getenv("DB_POOL_TIMEOUT_SEC", "30")),
        deadline_lead_hours=int(os.getenv("DEADLINE_LEAD_HOURS", "24")),
        consistency_window_days=int(os.getenv("CONSISTENCY_WINDOW_DAYS", "30")),
        enforce_max_occurrences=_env_bool("ENFORCE_MAX_OCCURRENCES", "True"),
    )

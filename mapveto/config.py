"""
Configuration - Read once from the environment.

Variables:
    VETO_ADMIN_SECRET   Secret for the management endpoints
    VETO_DATABASE_URL   SQLAlchemy URL of the match store
    VETO_MAPS_FILE      JSON file backing the map catalog
    VETO_DEFAULT_TIMER  Turn timer seconds when a client gives none
    VETO_LOG_LEVEL      Root log level
    ALLOWED_ORIGINS     Comma-separated CORS origins
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os


def _positive_int(raw: str | None, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@dataclass
class Settings:
    admin_secret: str = "default_secret"
    database_url: str = "sqlite:///./match_history.db"
    maps_file: str | None = "./maps.json"
    default_timer: int = 60
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            admin_secret=os.getenv("VETO_ADMIN_SECRET", "default_secret"),
            database_url=os.getenv("VETO_DATABASE_URL", "sqlite:///./match_history.db"),
            maps_file=os.getenv("VETO_MAPS_FILE", "./maps.json") or None,
            default_timer=_positive_int(os.getenv("VETO_DEFAULT_TIMER"), 60),
            log_level=os.getenv("VETO_LOG_LEVEL", "INFO"),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*").split(","),
        )

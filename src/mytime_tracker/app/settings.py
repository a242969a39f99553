"""Application settings."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "mytime-tracker"
    host: str = "0.0.0.0"
    port: int = 0
    log_level: str = "INFO"
    database_url: str = ""
    statement_timeout_ms: int = Field(default=5000, ge=0)
    connect_timeout_s: int = Field(default=5, ge=1)
    # IANA zone used to resolve month boundaries. Empty means the database
    # session's own TimeZone setting decides.
    timezone: str = ""
    auto_migrate: bool = True

    model_config = SettingsConfigDict(
        env_prefix="MYTIME_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        """Return MYTIME_DATABASE_URL or build one from the DB_* variables."""
        if self.database_url:
            return self.database_url
        host = os.getenv("DB_HOST", "").strip()
        database = os.getenv("DB_DATABASE", "").strip()
        if not host or not database:
            return ""
        user = quote(os.getenv("DB_USER", ""), safe="")
        password = quote(os.getenv("DB_PASSWORD", ""), safe="")
        credentials = ""
        if user:
            credentials = f"{user}:{password}@" if password else f"{user}@"
        port = os.getenv("DB_PORT", "").strip()
        netloc = f"{host}:{port}" if port else host
        return f"postgresql://{credentials}{netloc}/{database}"

    def resolved_port(self) -> int:
        if self.port:
            return self.port
        raw_value = os.getenv("PORT")
        if raw_value is None:
            return 3000
        try:
            return int(raw_value)
        except ValueError:
            return 3000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

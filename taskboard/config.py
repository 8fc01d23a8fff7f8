"""
Environment-backed settings for the taskboard service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SQLITE_FALLBACK_URL = "sqlite:///./taskboard.db"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Database; DATABASE_URL wins over the DB_* parts
    database_url: Optional[str] = Field(default=None)
    db_user: Optional[str] = Field(default=None)
    db_pass: Optional[str] = Field(default=None)
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: Optional[str] = Field(default=None)

    # Connection pool
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=5, ge=0)
    db_pool_timeout: float = Field(default=30.0, gt=0)

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    log_level: str = Field(default="INFO")

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        if self.db_name:
            user = quote_plus(self.db_user or "")
            password = quote_plus(self.db_pass or "")
            auth = f"{user}:{password}@" if user else ""
            return (
                f"postgresql+psycopg2://{auth}{self.db_host}:{self.db_port}/{self.db_name}"
            )
        return SQLITE_FALLBACK_URL


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()

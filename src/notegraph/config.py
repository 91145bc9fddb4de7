"""Configuration management for notegraph."""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DATABASE_NAME = "search.db"
DATA_DIR_NAME = ".notegraph"


class ProjectConfig(BaseSettings):
    """Configuration for a knowledge base."""

    # Default to ~/notegraph but allow override with env var
    home: Path = Field(
        default_factory=lambda: Path.home() / "notegraph",
        description="Root directory of the knowledge base",
    )

    log_level: str = Field(default="INFO", description="Minimum loguru level")

    log_file: Optional[Path] = Field(default=None, description="Also log to this file")

    default_search_limit: int = Field(
        default=10, gt=0, description="Result count used when a search gives no limit"
    )

    search_db_in_memory: bool = Field(
        default=True,
        description="Keep the search index in memory; it is rebuilt from files on startup",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTEGRAPH_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def database_path(self) -> Path:
        """Get SQLite database path for a file backed search index."""
        return self.home / DATA_DIR_NAME / DATABASE_NAME

    @field_validator("home")
    @classmethod
    def ensure_path_exists(cls, v: Path) -> Path:
        """Ensure knowledge base root exists."""
        v = v.expanduser()
        if not v.exists():
            v.mkdir(parents=True)
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

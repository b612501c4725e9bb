"""Configuration management for LevelUp MCP."""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LevelUpSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="INFO", validation_alias="LEVELUP_LOG_LEVEL")
    inactivity_days: int = Field(default=30, validation_alias="LEVELUP_INACTIVITY_DAYS")
    chroma_persist_path: Path = Field(
        default=Path("./storage/chroma"), validation_alias="CHROMA_PERSIST_PATH"
    )
    snapshot_collection: str = Field(
        default="levelup_state", validation_alias="LEVELUP_SNAPSHOT_COLLECTION"
    )
    persist_snapshots: bool = Field(default=True, validation_alias="LEVELUP_PERSIST_SNAPSHOTS")
    snapshot_retention: int = Field(default=20, validation_alias="LEVELUP_SNAPSHOT_RETENTION")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "LEVELUP_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("inactivity_days")
    @classmethod
    def _validate_inactivity_days(cls, value: int) -> int:
        if value < 1:
            raise ValueError("LEVELUP_INACTIVITY_DAYS must be >= 1")
        return value

    @field_validator("snapshot_retention")
    @classmethod
    def _validate_snapshot_retention(cls, value: int) -> int:
        if value < 1:
            raise ValueError("LEVELUP_SNAPSHOT_RETENTION must be >= 1")
        return value

    @field_validator("snapshot_collection")
    @classmethod
    def _validate_collection(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("LEVELUP_SNAPSHOT_COLLECTION must not be empty")
        return normalized

    @property
    def inactivity_window(self) -> timedelta:
        return timedelta(days=self.inactivity_days)


@lru_cache(maxsize=1)
def get_settings() -> LevelUpSettings:
    """Return cached settings instance."""

    settings = LevelUpSettings()
    settings.chroma_persist_path = settings.chroma_persist_path.expanduser().resolve()
    return settings


__all__ = ["LevelUpSettings", "get_settings"]

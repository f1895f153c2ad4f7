"""Configuration management for benchledger.

This module provides the environment-backed Settings class and the
explicit configuration values that storage and fingerprinting take.
Library code never reads Settings on its own; callers build a
StorageConfig or FingerprintConfig and pass it in.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

StorageType = Literal["sqlite", "memory", "postgres"]

DEFAULT_SQLITE_PATH = "results/benchledger.db"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables with
    the BENCHLEDGER_ prefix.

    Attributes:
        storage_type: Storage backend to use (sqlite or memory).
        sqlite_path: Path to the SQLite database file.
        tasks_dir: Directory holding task manifests, one sub-directory per difficulty.
        fixtures_dir: Directory holding fixture files, one sub-directory per difficulty.
        fixture_suffix: File suffix of fixture files.
        descriptor_name: Shared project descriptor file inside fixtures_dir.
        task_id_pattern: Regex whose first group extracts the task id from a manifest name.
        difficulties: Recognised difficulty directory names.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).

    Example:
        >>> # export BENCHLEDGER_SQLITE_PATH=/tmp/ledger.db
        >>> settings = Settings()
        >>> config = StorageConfig.from_settings(settings)

    Environment Variables:
        BENCHLEDGER_STORAGE_TYPE: Backend type (default: sqlite)
        BENCHLEDGER_SQLITE_PATH: Database path (default: results/benchledger.db)
        BENCHLEDGER_TASKS_DIR: Manifest directory (default: tasks)
        BENCHLEDGER_FIXTURES_DIR: Fixture directory (default: tests/al)
        BENCHLEDGER_LOG_LEVEL: Logging level (default: INFO)
    """

    model_config = SettingsConfigDict(
        env_prefix="BENCHLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage settings
    storage_type: StorageType = Field(
        default="sqlite",
        description="Storage backend type",
    )
    sqlite_path: str = Field(
        default=DEFAULT_SQLITE_PATH,
        description="Path to the SQLite database file",
    )

    # Task corpus settings
    tasks_dir: str = Field(
        default="tasks",
        description="Directory holding task manifests",
    )
    fixtures_dir: str = Field(
        default="tests/al",
        description="Directory holding task fixture files",
    )
    fixture_suffix: str = Field(
        default=".al",
        description="Suffix of fixture files",
    )
    descriptor_name: str = Field(
        default="app.json",
        description="Shared project descriptor file name inside fixtures_dir",
    )
    task_id_pattern: str = Field(
        default=r"^(CG-AL-[A-Z]\d+)",
        description="Regex extracting the task id from a manifest file name",
    )
    difficulties: list[str] = Field(
        default_factory=lambda: ["easy", "medium", "hard"],
        description="Difficulty directory names",
    )

    # General settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )


class StorageConfig(BaseModel):
    """Explicit configuration for one storage handle.

    Attributes:
        type: Backend type.
        sqlite_path: Database file path (sqlite only).
        postgres_url: Connection string (postgres, not supported yet).

    Example:
        >>> config = StorageConfig(type="sqlite", sqlite_path="results/ledger.db")
    """

    model_config = {"frozen": True}

    type: StorageType = Field(default="sqlite", description="Storage backend type")
    sqlite_path: str | None = Field(default=None, description="Path to the SQLite database file")
    postgres_url: str | None = Field(default=None, description="PostgreSQL connection string")

    @classmethod
    def from_settings(cls, settings: Settings) -> StorageConfig:
        """Build a storage config from environment settings."""
        return cls(type=settings.storage_type, sqlite_path=settings.sqlite_path)


class FingerprintConfig(BaseModel):
    """Explicit configuration for task-set fingerprinting.

    Attributes:
        fixtures_dir: Fixture directory, relative to the project root.
        fixture_suffix: Suffix fixture files must end with.
        descriptor_name: Shared descriptor file name inside fixtures_dir.
        task_id_pattern: Regex whose first group is the task id.
        difficulties: Difficulty directory names.
    """

    model_config = {"frozen": True}

    fixtures_dir: str = Field(default="tests/al", description="Fixture directory")
    fixture_suffix: str = Field(default=".al", description="Fixture file suffix")
    descriptor_name: str = Field(default="app.json", description="Shared descriptor file name")
    task_id_pattern: str = Field(default=r"^(CG-AL-[A-Z]\d+)", description="Task id regex")
    difficulties: tuple[str, ...] = Field(default=("easy", "medium", "hard"), description="Difficulty names")

    @classmethod
    def from_settings(cls, settings: Settings) -> FingerprintConfig:
        """Build a fingerprint config from environment settings."""
        return cls(
            fixtures_dir=settings.fixtures_dir,
            fixture_suffix=settings.fixture_suffix,
            descriptor_name=settings.descriptor_name,
            task_id_pattern=settings.task_id_pattern,
            difficulties=tuple(settings.difficulties),
        )

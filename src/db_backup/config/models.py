"""Pydantic models for the backup config file."""

from pydantic import BaseModel, Field

from db_backup.adapters.base import DEFAULT_TABLES
from db_backup.models import ScheduleConfig, StorageConfig


class BackupConfig(BaseModel):
    """Complete backup configuration from backup.toml."""

    tables: list[str] = Field(default_factory=lambda: list(DEFAULT_TABLES))
    storage: StorageConfig = Field(default_factory=StorageConfig)
    schedule: ScheduleConfig | None = None

"""Pydantic models for backup descriptors, storage and schedule config.

Field names are snake_case in Python and camelCase on the wire, matching
the persisted descriptor format (``isIncremental``, ``baseBackup``, ...).

Usage:
    from db_backup.models import BackupDescriptor, StorageConfig

    config = StorageConfig(type="s3", bucket="my-backups", region="eu-west-1")
    descriptor = BackupDescriptor.model_validate(payload)
"""

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DESCRIPTOR_VERSION = "1.0.0"

Record = dict[str, Any]
TableSnapshot = dict[str, list[Record]]

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class WireModel(BaseModel):
    """Base model with camelCase aliases; accepts either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Descriptor Models
# ============================================================================


class TableChanges(WireModel):
    """Delta for one table between a base backup and the current snapshot."""

    added: list[Record] = Field(default_factory=list)
    modified: list[Record] = Field(default_factory=list)
    deleted: list[Any] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)


class BackupDescriptor(WireModel):
    """Serialized backup metadata plus payload, before compression/encryption."""

    filename: str
    timestamp: str
    version: str = DESCRIPTOR_VERSION
    checksum: str = ""
    is_incremental: bool = False
    base_backup: str | None = None
    tables: TableSnapshot | None = None
    changes: dict[str, TableChanges] | None = None
    skipped_tables: list[str] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Dump to the JSON-compatible wire mapping (camelCase, no ``None`` fields)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Storage Models
# ============================================================================


class StorageCredentials(WireModel):
    """Explicit access keys for S3-compatible storage."""

    access_key_id: str
    secret_access_key: str


class StorageConfig(WireModel):
    """Where backups are stored."""

    type: Literal["object-store", "s3"] = "object-store"
    bucket: str | None = None
    region: str | None = None
    credentials: StorageCredentials | None = None


class BlobInfo(WireModel):
    """One stored blob as reported by a backend listing."""

    name: str
    created_at: datetime | None = None
    size: int | None = None


# ============================================================================
# Schedule Models
# ============================================================================


class ScheduleConfig(WireModel):
    """Persisted scheduled-backup configuration.

    ``time`` is wall-clock time in the timezone of the ``now`` handed to
    ``is_due``.  ``BackupService.run_scheduled_check`` defaults ``now`` to
    the current UTC time, so a stored ``"09:00"`` means 09:00 UTC unless the
    caller passes a local time.  ``last_run`` is stored timezone-aware;
    naive values are read as UTC.
    """

    frequency: Literal["daily", "weekly", "monthly"]
    time: str  # HH:mm, 24-hour
    retention_days: int = Field(ge=0)
    last_run: datetime | None = None
    incremental: bool = False

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not _TIME_RE.match(value):
            raise ValueError(f"time must be HH:mm (24-hour), got '{value}'")
        return value

    @property
    def hour(self) -> int:
        return int(self.time.split(":")[0])

    @property
    def minute(self) -> int:
        return int(self.time.split(":")[1])


# ============================================================================
# Result Models
# ============================================================================


class BackupResult(WireModel):
    """Outcome of ``create_backup``.

    ``fallback_reason`` is set whenever an incremental backup was requested
    but a full one was written instead.
    """

    filename: str
    is_incremental: bool
    requested_incremental: bool = False
    fallback_reason: str | None = None
    skipped_tables: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_fallback(self) -> "BackupResult":
        if self.requested_incremental and not self.is_incremental and not self.fallback_reason:
            raise ValueError("fallback_reason is required when an incremental backup degrades to full")
        return self


class TableRestoreCounts(WireModel):
    """Per-table row counts for a restore."""

    inserted: int = 0
    deleted: int = 0
    failed: int = 0


class RestoreSummary(WireModel):
    """Outcome of ``restore_backup``.

    ``chain`` lists the filenames replayed, root (full backup) first.
    """

    filename: str
    chain: list[str] = Field(default_factory=list)
    tables: dict[str, TableRestoreCounts] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def counts_for(self, table: str) -> TableRestoreCounts:
        if table not in self.tables:
            self.tables[table] = TableRestoreCounts()
        return self.tables[table]

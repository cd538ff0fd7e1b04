"""db-backup: Encrypted full and incremental backups for a relational store.

Snapshots a fixed set of tables, diffs against the last valid backup,
seals the result with a checksum, compresses and encrypts it, and stores it
in a Supabase storage bucket or S3.  Restores walk incremental chains back
to their full backup and replay them root to leaf.

Usage:
    from db_backup import BackupService, StorageConfig, ScheduleConfig
    from db_backup import create_backup, restore_backup, verify_backup
    from db_backup import AsyncPostgresAdapter, S3StorageBackend, Envelope
"""

__version__ = "0.1.0"

# Adapters
from db_backup.adapters.base import DEFAULT_TABLES, DataSource
from db_backup.adapters.postgres import AsyncPostgresAdapter
from db_backup.adapters.supabase import AsyncSupabaseAdapter

# Codec
from db_backup.codec import Envelope, compute_checksum, validate_descriptor, verify_checksum

# Storage
from db_backup.storage import S3StorageBackend, StorageBackend, SupabaseStorageBackend

# Config
from db_backup.config import BackupConfig, Settings, get_settings, load_backup_config

# Models
from db_backup.models import (
    BackupDescriptor,
    BackupResult,
    BlobInfo,
    RestoreSummary,
    ScheduleConfig,
    StorageConfig,
    TableChanges,
)

# Errors
from db_backup.errors import (
    BackupError,
    CodecError,
    ConfigurationError,
    IntegrityError,
    RestoreApplyError,
    SourceFetchError,
    StorageAuthorizationError,
    StorageError,
)

# Operations
from db_backup.backup import (
    create_backup,
    delete_backup,
    diff_table,
    list_backups,
    restore_backup,
    verify_backup,
)
from db_backup.schedule import ScheduleStore, cleanup_old_backups, is_due

# Factory and service
from db_backup.factory import get_data_source, get_storage_backend, resolve_url
from db_backup.notify import LogNotifier, Notifier, ResendNotifier
from db_backup.service import BackupService

__all__ = [
    # Adapters
    "DEFAULT_TABLES",
    "DataSource",
    "AsyncPostgresAdapter",
    "AsyncSupabaseAdapter",
    # Codec
    "Envelope",
    "compute_checksum",
    "validate_descriptor",
    "verify_checksum",
    # Storage
    "StorageBackend",
    "S3StorageBackend",
    "SupabaseStorageBackend",
    # Config
    "BackupConfig",
    "Settings",
    "get_settings",
    "load_backup_config",
    # Models
    "BackupDescriptor",
    "BackupResult",
    "BlobInfo",
    "RestoreSummary",
    "ScheduleConfig",
    "StorageConfig",
    "TableChanges",
    # Errors
    "BackupError",
    "CodecError",
    "ConfigurationError",
    "IntegrityError",
    "RestoreApplyError",
    "SourceFetchError",
    "StorageAuthorizationError",
    "StorageError",
    # Operations
    "create_backup",
    "delete_backup",
    "diff_table",
    "list_backups",
    "restore_backup",
    "verify_backup",
    "ScheduleStore",
    "cleanup_old_backups",
    "is_due",
    # Factory and service
    "get_data_source",
    "get_storage_backend",
    "resolve_url",
    "LogNotifier",
    "Notifier",
    "ResendNotifier",
    "BackupService",
]

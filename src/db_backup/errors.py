"""Exception taxonomy for backup and restore operations.

Every error raised by the library derives from ``BackupError`` so the
transport layer can catch one type and surface a user-visible failure.

Usage:
    from db_backup.errors import IntegrityError, StorageError

    try:
        await service.restore_backup("backup_2026-01-15_09-00-00-000000.enc", config)
    except IntegrityError:
        ...  # backup is permanently unusable
"""


class BackupError(Exception):
    """Base class for all backup/restore errors."""

    pass


class ConfigurationError(BackupError):
    """Raised when a required secret, credential or setting is missing or invalid."""

    pass


class SourceFetchError(BackupError):
    """Raised when a table cannot be read from the data source.

    Recoverable: the collector skips the table and keeps going.
    """

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"Failed to fetch table '{table}': {message}")
        self.table = table


class StorageError(BackupError):
    """Raised when a storage backend put/get/list/delete fails."""

    pass


class StorageAuthorizationError(StorageError):
    """Raised when the storage backend rejects our credentials.

    Never retried.
    """

    pass


class IntegrityError(BackupError):
    """Raised when a backup's checksum does not match its content."""

    pass


class CodecError(BackupError):
    """Raised when a backup cannot be decrypted, decompressed or parsed."""

    pass


class RestoreApplyError(BackupError):
    """Raised when writing one table during restore fails."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"Failed to restore table '{table}': {message}")
        self.table = table

"""Storage backends for backup blobs.

Use ``db_backup.factory.get_storage_backend`` to pick one from a
``StorageConfig``; callers never branch on the storage type themselves.

Usage:
    from db_backup.storage import StorageBackend, S3StorageBackend, SupabaseStorageBackend
"""

from db_backup.storage.base import StorageBackend
from db_backup.storage.s3 import S3StorageBackend
from db_backup.storage.supabase import SupabaseStorageBackend

__all__ = [
    "StorageBackend",
    "S3StorageBackend",
    "SupabaseStorageBackend",
]

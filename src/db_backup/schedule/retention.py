"""Retention sweep: delete backups older than the retention window."""

import logging
from datetime import datetime, timedelta, timezone

from db_backup.backup.naming import FILENAME_PREFIX, blob_time
from db_backup.storage.base import StorageBackend

logger = logging.getLogger(__name__)


async def cleanup_old_backups(
    storage: StorageBackend,
    retention_days: int,
    now: datetime | None = None,
) -> list[str]:
    """Delete every backup created before ``now - retention_days``.

    Deletes run one at a time; the first storage error stops the sweep and
    propagates, leaving the remaining backups in place.

    Args:
        storage: Backend to sweep.
        retention_days: Age threshold in days.
        now: Reference time (defaults to the current UTC time).  Naive
            values are taken as UTC.

    Returns:
        Names of the deleted backups.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    cutoff = now - timedelta(days=retention_days)

    deleted: list[str] = []
    for blob in await storage.list():
        if not blob.name.startswith(FILENAME_PREFIX):
            continue
        created = blob_time(blob)
        if created is None:
            logger.warning(f"Cannot tell the age of {blob.name}; keeping it")
            continue
        if created < cutoff:
            await storage.delete(blob.name)
            deleted.append(blob.name)
            logger.info(f"Deleted expired backup {blob.name}")

    return deleted

"""On-demand backup operations and the scheduled-backup trigger.

``BackupService`` binds one data source, envelope and notifier (built from
``Settings`` unless given) and exposes every operation the transport layer
needs.  Storage is chosen per call from a ``StorageConfig``.

Usage:
    from db_backup.service import BackupService
    from db_backup.models import StorageConfig

    service = BackupService()
    s3 = StorageConfig(type="s3", bucket="acme-backups", region="eu-west-1")

    result = await service.create_backup(is_incremental=True, storage_config=s3)
    summary = await service.restore_backup(result.filename, s3)

    # from a host cron/timer, e.g. every minute
    await service.run_scheduled_check()
"""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from db_backup.adapters.base import DataSource
from db_backup.backup import backup_restore
from db_backup.codec import Envelope
from db_backup.config import Settings, get_settings
from db_backup.factory import get_data_source, get_envelope, get_notifier, get_storage_backend
from db_backup.models import (
    BackupResult,
    BlobInfo,
    RestoreSummary,
    ScheduleConfig,
    StorageConfig,
)
from db_backup.notify import Notifier
from db_backup.schedule import ScheduleStore, cleanup_old_backups, is_due
from db_backup.storage.base import StorageBackend

logger = logging.getLogger(__name__)

StorageFactory = Callable[[StorageConfig], StorageBackend]


class BackupService:
    """Facade over backup, restore, listing, schedule and retention.

    Args:
        source: Data source (default: ``get_data_source(settings)``).
        settings: Environment settings (default: cached ``get_settings()``).
        envelope: Payload codec (default: built from ``BACKUP_ENCRYPTION_KEY``).
        notifier: Notification sink (default: ``get_notifier(settings)``).
        storage_factory: Builds a backend from a ``StorageConfig``
            (default: ``get_storage_backend``).
    """

    def __init__(
        self,
        source: DataSource | None = None,
        settings: Settings | None = None,
        envelope: Envelope | None = None,
        notifier: Notifier | None = None,
        storage_factory: StorageFactory | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._source = source or get_data_source(self._settings)
        self._envelope = envelope or get_envelope(self._settings)
        self._notifier = notifier or get_notifier(self._settings)
        self._storage_factory = storage_factory or self._default_storage
        self._schedules = ScheduleStore(self._source)

    def _default_storage(self, config: StorageConfig) -> StorageBackend:
        return get_storage_backend(config, self._settings)

    def _storage(self, config: StorageConfig | None) -> StorageBackend:
        return self._storage_factory(config or StorageConfig())

    @property
    def recipient(self) -> str:
        return self._settings.admin_email

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    async def create_backup(
        self,
        is_incremental: bool = False,
        storage_config: StorageConfig | None = None,
    ) -> BackupResult:
        return await backup_restore.create_backup(
            self._source,
            self._storage(storage_config),
            self._envelope,
            incremental=is_incremental,
            notifier=self._notifier,
            recipient=self.recipient,
        )

    async def restore_backup(
        self,
        filename: str,
        storage_config: StorageConfig | None = None,
    ) -> RestoreSummary:
        return await backup_restore.restore_backup(
            self._source,
            self._storage(storage_config),
            self._envelope,
            filename,
            notifier=self._notifier,
            recipient=self.recipient,
            chunk_size=self._settings.restore_chunk_size,
        )

    async def list_backups(self, storage_config: StorageConfig | None = None) -> list[BlobInfo]:
        return await backup_restore.list_backups(self._storage(storage_config))

    async def delete_backup(
        self,
        filename: str,
        storage_config: StorageConfig | None = None,
    ) -> None:
        await backup_restore.delete_backup(
            self._storage(storage_config),
            filename,
            notifier=self._notifier,
            recipient=self.recipient,
        )

    async def verify_backup(
        self,
        filename: str,
        storage_config: StorageConfig | None = None,
    ) -> dict:
        return await backup_restore.verify_backup(
            self._storage(storage_config), self._envelope, filename
        )

    async def cleanup(
        self,
        retention_days: int,
        storage_config: StorageConfig | None = None,
        now: datetime | None = None,
    ) -> list[str]:
        """Delete backups older than ``retention_days``; returns deleted names."""
        return await cleanup_old_backups(self._storage(storage_config), retention_days, now)

    # ------------------------------------------------------------------
    # Schedule
    # ------------------------------------------------------------------

    async def configure_schedule(self, schedule: ScheduleConfig) -> ScheduleConfig:
        """Store ``schedule``, keeping the previous ``last_run`` if it has none.

        Reconfiguring therefore does not fire a second run for a boundary
        that was already served.
        """
        if schedule.last_run is None:
            current = await self._schedules.get()
            if current is not None and current.last_run is not None:
                schedule = schedule.model_copy(update={"last_run": current.last_run})
        await self._schedules.save(schedule)
        return schedule

    async def get_schedule(self) -> ScheduleConfig | None:
        return await self._schedules.get()

    async def delete_schedule(self) -> None:
        await self._schedules.delete()

    async def run_scheduled_check(
        self,
        storage_config: StorageConfig | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Run the scheduled backup if it is due, then sweep old backups.

        Meant to be called periodically by the host (cron, timer, worker).
        Failures are logged, never raised.

        Args:
            storage_config: Where to back up (default: object store).
            now: Current time (defaults to the current UTC time).

        Returns:
            True if a scheduled backup ran and was recorded.
        """
        now = now or datetime.now(timezone.utc)
        try:
            schedule = await self._schedules.get()
            if schedule is None:
                logger.debug("No backup schedule configured")
                return False
            if not is_due(now, schedule.last_run, schedule):
                return False

            logger.info(f"Running scheduled {schedule.frequency} backup")
            result = await self.create_backup(schedule.incremental, storage_config)
            await self._schedules.mark_run(schedule, now)

            deleted = await self.cleanup(schedule.retention_days, storage_config, now)
            logger.info(
                f"Scheduled backup {result.filename} done, {len(deleted)} expired backups removed"
            )
            return True
        except Exception as e:
            logger.error(f"Scheduled backup failed: {e}", exc_info=True)
            return False

    async def close(self) -> None:
        await self._source.close()

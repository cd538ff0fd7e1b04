"""Scheduled-backup due-ness and schedule persistence.

``is_due`` is a pure predicate over an explicit schedule record; there is
no process-global "last run" state.  ``ScheduleStore`` keeps that record
in a single row of the ``backup_schedules`` table through the same narrow
data source interface the backups use.

A boundary missed while the process was down is not replayed: once the day
(or Sunday, or the 1st) has passed, the run is simply skipped.

Usage:
    from db_backup.schedule.scheduler import ScheduleStore, is_due

    store = ScheduleStore(adapter)
    schedule = await store.get()
    if schedule and is_due(datetime.now(timezone.utc), schedule.last_run, schedule):
        ...
"""

import logging
from datetime import datetime, timezone
from typing import Any

from db_backup.adapters.base import DataSource
from db_backup.models import ScheduleConfig

logger = logging.getLogger(__name__)

SCHEDULE_TABLE = "backup_schedules"
SCHEDULE_ROW_ID = 1
RETENTION_COLUMN = "retention"
WEEKLY_RUN_WEEKDAY = 6  # Sunday
MONTHLY_RUN_DAY = 1


def _align(last_run: datetime, now: datetime) -> datetime:
    """Make ``last_run`` comparable with ``now``; naive values are taken as UTC."""
    if now.tzinfo is not None and last_run.tzinfo is None:
        return last_run.replace(tzinfo=timezone.utc)
    if now.tzinfo is None and last_run.tzinfo is not None:
        return last_run.astimezone(timezone.utc).replace(tzinfo=None)
    return last_run


def is_due(now: datetime, last_run: datetime | None, schedule: ScheduleConfig) -> bool:
    """Whether a scheduled boundary has been reached and not yet served.

    The boundary is today at ``schedule.time`` in ``now``'s timezone (UTC
    when ``run_scheduled_check`` is called without ``now``).  It is due once
    ``now`` reaches it and ``last_run`` is missing or earlier.
    Weekly schedules only fire on Sunday, monthly ones on the 1st.

    Args:
        now: Current time.
        last_run: When the last scheduled backup ran, if ever.
        schedule: Schedule configuration.

    Example:
        >>> schedule = ScheduleConfig(frequency="daily", time="09:00", retention_days=7)
        >>> is_due(datetime(2026, 1, 15, 9, 0, 1), datetime(2026, 1, 14, 9, 5), schedule)
        True
        >>> is_due(datetime(2026, 1, 15, 8, 59, 59), datetime(2026, 1, 14, 9, 5), schedule)
        False
    """
    boundary = now.replace(hour=schedule.hour, minute=schedule.minute, second=0, microsecond=0)
    if now < boundary:
        return False
    if last_run is not None and _align(last_run, now) >= boundary:
        return False

    if schedule.frequency == "weekly":
        return now.weekday() == WEEKLY_RUN_WEEKDAY
    if schedule.frequency == "monthly":
        return now.day == MONTHLY_RUN_DAY
    return True


class ScheduleStore:
    """Persist the single schedule record through a ``DataSource``.

    The row keeps retention in a ``retention`` column.  ``incremental`` is
    optional: it is written when set or when the stored row already has
    it, so tables without that column keep working for full schedules.

    Args:
        source: Data source holding the ``backup_schedules`` table.
        table: Table name override.
    """

    def __init__(self, source: DataSource, table: str = SCHEDULE_TABLE) -> None:
        self._source = source
        self._table = table

    @staticmethod
    def _to_row(schedule: ScheduleConfig, with_incremental: bool = False) -> dict[str, Any]:
        data = schedule.model_dump(mode="json")
        row = {
            "id": SCHEDULE_ROW_ID,
            "frequency": data["frequency"],
            "time": data["time"],
            RETENTION_COLUMN: data["retention_days"],
            "last_run": data["last_run"],
        }
        if with_incremental or schedule.incremental:
            row["incremental"] = schedule.incremental
        return row

    @staticmethod
    def _from_row(row: dict[str, Any]) -> ScheduleConfig:
        data = {k: v for k, v in row.items() if k != "id"}
        if RETENTION_COLUMN in data:
            data["retention_days"] = data.pop(RETENTION_COLUMN)
        if data.get("incremental") is None:
            data.pop("incremental", None)
        return ScheduleConfig.model_validate(data)

    async def _stored_row(self) -> dict[str, Any] | None:
        rows = await self._source.fetch_all(self._table)
        for row in rows:
            if row.get("id") == SCHEDULE_ROW_ID:
                return row
        return None

    async def get(self) -> ScheduleConfig | None:
        """Return the stored schedule, or ``None`` if none is configured."""
        row = await self._stored_row()
        return self._from_row(row) if row is not None else None

    async def save(self, schedule: ScheduleConfig) -> None:
        """Insert or replace the stored schedule in a single write."""
        stored = await self._stored_row()
        with_incremental = stored is not None and "incremental" in stored
        await self._source.upsert(self._table, [self._to_row(schedule, with_incremental)])
        logger.info(f"Saved {schedule.frequency} backup schedule at {schedule.time}")

    async def delete(self) -> None:
        await self._source.delete_by_ids(self._table, [SCHEDULE_ROW_ID])
        logger.info("Deleted backup schedule")

    async def mark_run(self, schedule: ScheduleConfig, when: datetime) -> ScheduleConfig:
        """Persist ``when`` as the schedule's last run and return the updated record.

        Only ``last_run`` is written; the rest of the row is left as stored.
        """
        updated = schedule.model_copy(update={"last_run": when})
        await self._source.update_by_id(
            self._table, SCHEDULE_ROW_ID, {"last_run": when.isoformat()}
        )
        return updated

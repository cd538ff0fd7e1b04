"""Scheduled backups and retention.

Usage:
    from db_backup.schedule import ScheduleStore, cleanup_old_backups, is_due
"""

from db_backup.schedule.retention import cleanup_old_backups
from db_backup.schedule.scheduler import ScheduleStore, is_due

__all__ = ["ScheduleStore", "cleanup_old_backups", "is_due"]

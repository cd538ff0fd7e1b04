"""Snapshot, diff, backup and restore.

Usage:
    from db_backup.backup import create_backup, restore_backup, verify_backup
    from db_backup.backup import diff_table, collect_snapshot
"""

from db_backup.backup.backup_restore import (
    create_backup,
    delete_backup,
    list_backups,
    load_backup,
    resolve_chain,
    restore_backup,
    verify_backup,
)
from db_backup.backup.collector import collect_snapshot
from db_backup.backup.diff import apply_changes, diff_snapshot, diff_table

__all__ = [
    "apply_changes",
    "collect_snapshot",
    "create_backup",
    "delete_backup",
    "diff_snapshot",
    "diff_table",
    "list_backups",
    "load_backup",
    "resolve_chain",
    "restore_backup",
    "verify_backup",
]

"""Configuration: environment settings and the backup TOML file.

Usage:
    >>> from db_backup.config import get_settings, load_backup_config, BackupConfig
"""

from db_backup.config.loader import load_backup_config
from db_backup.config.models import BackupConfig
from db_backup.config.settings import Settings, get_settings

__all__ = ["load_backup_config", "BackupConfig", "Settings", "get_settings"]

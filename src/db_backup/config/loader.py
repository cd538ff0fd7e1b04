"""TOML loader for the backup config file.

Example ``backup.toml``::

    tables = ["users", "clients", "orders"]

    [storage]
    type = "s3"
    bucket = "acme-backups"
    region = "eu-west-1"

    [schedule]
    frequency = "daily"
    time = "02:30"
    retention_days = 14
    incremental = true
"""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_backup.config.models import BackupConfig


def load_backup_config(config_path: Path | None = None) -> BackupConfig:
    """Load backup configuration from a TOML file.

    Args:
        config_path: Path to backup.toml (default: ./backup.toml)

    Returns:
        BackupConfig with tables, storage and optional schedule

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / "backup.toml"

    if not config_path.exists():
        raise FileNotFoundError(
            f"Backup config not found: {config_path}\n"
            f"Create backup.toml with a [storage] section."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        return BackupConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid backup config in {config_path}: {e}") from e

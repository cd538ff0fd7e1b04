"""Backup filenames and their embedded creation times.

Filenames look like ``backup_2026-01-15_09-00-00-123456.enc`` (full) or
``backup_2026-01-15_09-00-00-123456_inc.enc`` (incremental), in UTC.  The
embedded time orders backups chronologically without trusting the
backend's reported metadata.  Names without microseconds
(``backup_2026-01-15_09-00-00.enc``) are accepted when parsing.
"""

import re
from datetime import datetime, timezone

from db_backup.models import BlobInfo

FILENAME_PREFIX = "backup_"
FILENAME_SUFFIX = ".enc"
INCREMENTAL_MARKER = "_inc"

_NAME_RE = re.compile(
    r"^backup_(?P<stamp>\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})(?:-(?P<micro>\d{6}))?"
    r"(?P<inc>_inc)?\.enc$"
)


def make_filename(created_at: datetime, incremental: bool) -> str:
    """Build the filename for a backup created at ``created_at``."""
    stamp = created_at.astimezone(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S-%f")
    marker = INCREMENTAL_MARKER if incremental else ""
    return f"{FILENAME_PREFIX}{stamp}{marker}{FILENAME_SUFFIX}"


def parse_filename_time(name: str) -> datetime | None:
    """Return the UTC creation time embedded in ``name``, or ``None``."""
    match = _NAME_RE.match(name)
    if not match:
        return None
    parsed = datetime.strptime(match.group("stamp"), "%Y-%m-%d_%H-%M-%S")
    micro = match.group("micro")
    if micro:
        parsed = parsed.replace(microsecond=int(micro))
    return parsed.replace(tzinfo=timezone.utc)


def is_backup_name(name: str) -> bool:
    return _NAME_RE.match(name) is not None


def blob_time(blob: BlobInfo) -> datetime | None:
    """Creation time of ``blob``: filename first, backend metadata as fallback."""
    parsed = parse_filename_time(blob.name)
    if parsed is not None:
        return parsed
    if blob.created_at is None:
        return None
    if blob.created_at.tzinfo is None:
        return blob.created_at.replace(tzinfo=timezone.utc)
    return blob.created_at


def newest_first(blobs: list[BlobInfo]) -> list[BlobInfo]:
    """Backup blobs sorted most recent first.  Foreign names are dropped."""
    dated = [
        (blob_time(blob), blob)
        for blob in blobs
        if blob.name.startswith(FILENAME_PREFIX) and blob.name.endswith(FILENAME_SUFFIX)
    ]
    dated = [(when, blob) for when, blob in dated if when is not None]
    dated.sort(key=lambda pair: (pair[0], pair[1].name), reverse=True)
    return [blob for _, blob in dated]

"""Snapshot collection from the data source.

A table whose fetch fails is logged and left out of the snapshot rather
than aborting the backup; the caller records it as skipped.
"""

import logging

from db_backup.adapters.base import DataSource
from db_backup.errors import SourceFetchError
from db_backup.models import TableSnapshot

logger = logging.getLogger(__name__)


async def collect_snapshot(
    source: DataSource,
    tables: list[str] | None = None,
) -> tuple[TableSnapshot, list[str]]:
    """Read the full contents of each allow-listed table.

    Args:
        source: Data source to read from.
        tables: Tables to read.  Defaults to ``source.list_tables()``.

    Returns:
        Tuple of (snapshot, skipped table names).

    Example:
        snapshot, skipped = await collect_snapshot(adapter)
        if skipped:
            logger.warning(f"Partial backup, skipped: {skipped}")
    """
    snapshot: TableSnapshot = {}
    skipped: list[str] = []

    for table in tables if tables is not None else source.list_tables():
        try:
            rows = await source.fetch_all(table)
        except Exception as e:
            error = SourceFetchError(table, str(e))
            logger.error(f"{error}; table omitted from backup")
            skipped.append(table)
            continue
        snapshot[table] = list(rows)
        logger.debug(f"Collected {len(rows)} rows from {table}")

    return snapshot, skipped

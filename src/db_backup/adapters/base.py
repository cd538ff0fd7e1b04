"""Data source protocol definition.

Defines the ``DataSource`` Protocol that backup and restore consume.  It is
narrow: whole-table reads, bulk inserts, upserts, and updates or deletes
by id.  All methods are ``async def``.

Usage:
    from db_backup.adapters.base import DataSource

    async def copy_table(source: DataSource, table: str) -> list[dict]:
        rows = await source.fetch_all(table)
        await source.delete_all(table)
        await source.bulk_insert(table, rows)
        return rows
"""

from typing import Any, Protocol

DEFAULT_TABLES: tuple[str, ...] = (
    "users",
    "clients",
    "products",
    "orders",
    "order_items",
    "commissions",
    "commission_configs",
    "audit_logs",
)


class DataSource(Protocol):
    """Relational data store capability used by the backup engine.

    Implementations are constructed with the fixed allow-list of tables to
    back up and return it from ``list_tables``.
    """

    def list_tables(self) -> list[str]:
        """Return the allow-list of tables to back up, in restore order."""
        ...

    async def fetch_all(self, table: str) -> list[dict]:
        """Return every row of ``table``.

        Args:
            table: Table name.

        Returns:
            List of dicts, one per row.  Values are JSON-compatible.
        """
        ...

    async def bulk_insert(self, table: str, records: list[dict]) -> None:
        """Insert ``records`` into ``table`` in one call.

        Callers are responsible for chunking large inputs.

        Raises:
            Exception: On duplicate key or constraint violation.
        """
        ...

    async def upsert(self, table: str, records: list[dict]) -> None:
        """Insert ``records``, replacing rows whose ``id`` already exists.

        Each record is written atomically: a failed call leaves the
        existing row in place.
        """
        ...

    async def update_by_id(self, table: str, id: Any, values: dict) -> None:
        """Set ``values`` on the row of ``table`` whose ``id`` is ``id``."""
        ...

    async def delete_by_ids(self, table: str, ids: list[Any]) -> None:
        """Delete the rows of ``table`` whose ``id`` is in ``ids``."""
        ...

    async def delete_all(self, table: str) -> None:
        """Delete every row of ``table`` unconditionally."""
        ...

    async def truncate(self, table: str) -> None:
        """Atomically empty ``table``.

        Optional capability.  Adapters that cannot truncate raise
        ``NotImplementedError`` and callers fall back to ``delete_all``.
        """
        ...

    async def close(self) -> None:
        """Release connections held by the adapter."""
        ...

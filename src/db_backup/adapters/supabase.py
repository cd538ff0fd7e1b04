"""Async Supabase data source.

Provides ``AsyncSupabaseAdapter``, an async implementation of the
``DataSource`` protocol using the supabase-py async client, and
``LazySupabaseClient``, the lazily-initialized client holder it shares with
the Supabase storage backend.

The client is initialized on first use with an ``asyncio.Lock`` to ensure
it is created exactly once.

Usage:
    from db_backup.adapters.supabase import AsyncSupabaseAdapter

    adapter = AsyncSupabaseAdapter(
        url="https://xyzproject.supabase.co",
        key="eyJ...",
        tables=["clients", "orders"],
    )

    rows = await adapter.fetch_all("clients")
    await adapter.close()
"""

import asyncio
from typing import Any

from supabase import AsyncClient, acreate_client

from db_backup.adapters.base import DEFAULT_TABLES

PAGE_SIZE = 1000
TRUNCATE_RPC = "truncate_table"


class LazySupabaseClient:
    """Create an ``AsyncClient`` on first use and reuse it afterwards.

    Args:
        url: Supabase project URL.
        key: Supabase API key (service role key for backups).
    """

    def __init__(self, url: str, key: str) -> None:
        self._url: str = url
        self._key: str = key
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get(self) -> AsyncClient:
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = await acreate_client(self._url, self._key)
        return self._client

    async def close(self) -> None:
        """Close the client.  No-op if it was never created."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class AsyncSupabaseAdapter:
    """Async Supabase implementation of the ``DataSource`` protocol.

    Reads page through PostgREST's row limit with ``range()``.  ``truncate``
    calls a ``truncate_table(table_name)`` RPC that must exist in the
    database; when it does not, the call fails and restore falls back to
    ``delete_all``.

    Args:
        url: Supabase project URL.
        key: Supabase API key (service role key, so RLS does not hide rows).
        tables: Allow-list of tables to back up.  Defaults to
            ``DEFAULT_TABLES``.
        page_size: Rows per ``fetch_all`` request.
    """

    def __init__(
        self,
        url: str,
        key: str,
        tables: list[str] | None = None,
        page_size: int = PAGE_SIZE,
    ) -> None:
        self._client = LazySupabaseClient(url, key)
        self._tables: list[str] = list(tables) if tables else list(DEFAULT_TABLES)
        self._page_size = page_size

    def list_tables(self) -> list[str]:
        return list(self._tables)

    async def fetch_all(self, table: str) -> list[dict]:
        client = await self._client.get()
        rows: list[dict] = []
        offset = 0
        while True:
            result = await (
                client.table(table)
                .select("*")
                .order("id")
                .range(offset, offset + self._page_size - 1)
                .execute()
            )
            page = result.data or []
            rows.extend(page)
            if len(page) < self._page_size:
                return rows
            offset += self._page_size

    async def bulk_insert(self, table: str, records: list[dict]) -> None:
        if not records:
            return
        client = await self._client.get()
        await client.table(table).insert(records).execute()

    async def upsert(self, table: str, records: list[dict]) -> None:
        if not records:
            return
        client = await self._client.get()
        await client.table(table).upsert(records).execute()

    async def update_by_id(self, table: str, id: Any, values: dict) -> None:
        if not values:
            return
        client = await self._client.get()
        await client.table(table).update(values).eq("id", id).execute()

    async def delete_by_ids(self, table: str, ids: list[Any]) -> None:
        if not ids:
            return
        client = await self._client.get()
        await client.table(table).delete().in_("id", list(ids)).execute()

    async def delete_all(self, table: str) -> None:
        """Delete every row.  PostgREST refuses unfiltered deletes, hence the filter."""
        client = await self._client.get()
        await client.table(table).delete().not_.is_("id", "null").execute()

    async def truncate(self, table: str) -> None:
        client = await self._client.get()
        await client.rpc(TRUNCATE_RPC, {"table_name": table}).execute()

    async def close(self) -> None:
        await self._client.close()

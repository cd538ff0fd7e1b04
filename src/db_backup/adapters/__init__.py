"""Data source adapters package.

Provides the ``DataSource`` Protocol and concrete async adapter
implementations for PostgreSQL and Supabase.

Usage:
    from db_backup.adapters import DataSource, AsyncPostgresAdapter, AsyncSupabaseAdapter
"""

from db_backup.adapters.base import DEFAULT_TABLES, DataSource
from db_backup.adapters.postgres import AsyncPostgresAdapter
from db_backup.adapters.supabase import AsyncSupabaseAdapter, LazySupabaseClient

__all__ = [
    "DEFAULT_TABLES",
    "DataSource",
    "AsyncPostgresAdapter",
    "AsyncSupabaseAdapter",
    "LazySupabaseClient",
]

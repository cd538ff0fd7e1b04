"""Supabase Storage backend (the generic "object-store" type).

Usage:
    from db_backup.storage.supabase import SupabaseStorageBackend

    storage = SupabaseStorageBackend(client, bucket="backups")
    await storage.put("backup_2026-01-15_09-00-00-000000.enc", blob)
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from db_backup._retry import DEFAULT_ATTEMPTS, DEFAULT_WAIT_SECONDS, call_with_retry
from db_backup.adapters.supabase import LazySupabaseClient
from db_backup.errors import StorageAuthorizationError, StorageError
from db_backup.models import BlobInfo
from db_backup.storage.base import AUTH_STATUS_CODES, http_status_of

logger = logging.getLogger(__name__)

T = TypeVar("T")

LIST_PAGE_SIZE = 100
CONTENT_TYPE = "application/octet-stream"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    status = http_status_of(exc)
    return status is not None and (status == 429 or status >= 500)


class SupabaseStorageBackend:
    """``StorageBackend`` over a Supabase Storage bucket.

    Args:
        client: Shared lazily-created Supabase client.
        bucket: Bucket name.
        timeout: Seconds allowed per attempt.
        attempts: Total attempts for transient failures.
        retry_wait: Seconds between attempts.
    """

    def __init__(
        self,
        client: LazySupabaseClient,
        bucket: str = "backups",
        timeout: float = 30.0,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_wait: float = DEFAULT_WAIT_SECONDS,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._timeout = timeout
        self._attempts = attempts
        self._retry_wait = retry_wait

    async def _bucket_api(self) -> Any:
        client = await self._client.get()
        return client.storage.from_(self._bucket)

    async def _call(self, action: str, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call_with_retry(
                operation,
                timeout=self._timeout,
                is_transient=_is_transient,
                attempts=self._attempts,
                wait=self._retry_wait,
            )
        except Exception as e:
            if http_status_of(e) in AUTH_STATUS_CODES:
                raise StorageAuthorizationError(
                    f"Supabase storage rejected credentials during {action}: {e}"
                ) from e
            raise StorageError(f"Supabase storage {action} failed: {e}") from e

    async def put(self, name: str, data: bytes) -> None:
        async def _upload() -> None:
            bucket = await self._bucket_api()
            await bucket.upload(
                name,
                data,
                file_options={"content-type": CONTENT_TYPE, "upsert": "false"},
            )

        await self._call(f"put '{name}'", _upload)
        logger.debug(f"Uploaded {name} ({len(data)} bytes) to bucket {self._bucket}")

    async def get(self, name: str) -> bytes:
        async def _download() -> bytes:
            bucket = await self._bucket_api()
            return await bucket.download(name)

        return await self._call(f"get '{name}'", _download)

    async def list(self) -> list[BlobInfo]:
        async def _list() -> list[dict]:
            bucket = await self._bucket_api()
            items: list[dict] = []
            offset = 0
            while True:
                page = await bucket.list(
                    None,
                    {
                        "limit": LIST_PAGE_SIZE,
                        "offset": offset,
                        "sortBy": {"column": "name", "order": "asc"},
                    },
                )
                items.extend(page)
                if len(page) < LIST_PAGE_SIZE:
                    return items
                offset += LIST_PAGE_SIZE

        items = await self._call("list", _list)
        blobs: list[BlobInfo] = []
        for item in items:
            # Folder placeholders have no id
            if item.get("id") is None:
                continue
            metadata = item.get("metadata") or {}
            blobs.append(
                BlobInfo(
                    name=item["name"],
                    created_at=item.get("created_at"),
                    size=metadata.get("size"),
                )
            )
        return blobs

    async def delete(self, name: str) -> None:
        async def _remove() -> None:
            bucket = await self._bucket_api()
            await bucket.remove([name])

        await self._call(f"delete '{name}'", _remove)

"""Storage backend protocol definition.

Defines the ``StorageBackend`` Protocol that backup blobs are written to.
Blobs are immutable: implementations refuse to overwrite an existing name.

Usage:
    from db_backup.storage.base import StorageBackend

    async def newest(storage: StorageBackend) -> str | None:
        blobs = await storage.list()
        return max(blobs, key=lambda b: b.name).name if blobs else None
"""

from typing import Protocol

from db_backup.models import BlobInfo

AUTH_STATUS_CODES = frozenset({401, 403})


class StorageBackend(Protocol):
    """Uniform put/get/list/delete over named blobs.

    Implementations raise ``StorageError`` (or
    ``StorageAuthorizationError``) for every failure.
    """

    async def put(self, name: str, data: bytes) -> None:
        """Store ``data`` under ``name``.  Fails if ``name`` already exists."""
        ...

    async def get(self, name: str) -> bytes:
        """Return the bytes stored under ``name``."""
        ...

    async def list(self) -> list[BlobInfo]:
        """Return every stored blob with its creation time and size."""
        ...

    async def delete(self, name: str) -> None:
        """Remove the blob stored under ``name``."""
        ...


def http_status_of(exc: BaseException) -> int | None:
    """Best-effort HTTP status of a client library exception."""
    for attr in ("status", "status_code", "statusCode"):
        value = getattr(exc, attr, None)
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return None

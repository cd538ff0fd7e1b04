"""S3-compatible storage backend using aioboto3.

Usage:
    from db_backup.storage.s3 import S3StorageBackend

    storage = S3StorageBackend(bucket="my-backups", region="eu-west-1")
    blobs = await storage.list()
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import aioboto3
from botocore.exceptions import (
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
)

from db_backup._retry import DEFAULT_ATTEMPTS, DEFAULT_WAIT_SECONDS, call_with_retry
from db_backup.errors import StorageAuthorizationError, StorageError
from db_backup.models import BlobInfo
from db_backup.storage.base import AUTH_STATUS_CODES

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_PREFIX = "backup_"
CONTENT_TYPE = "application/octet-stream"

AUTH_ERROR_CODES = frozenset({
    "AccessDenied",
    "AllAccessDisabled",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "InvalidToken",
    "SignatureDoesNotMatch",
})
THROTTLE_ERROR_CODES = frozenset({
    "RequestTimeout",
    "SlowDown",
    "Throttling",
    "ThrottlingException",
})


def _client_error_details(exc: ClientError) -> tuple[str, int]:
    code = exc.response.get("Error", {}).get("Code", "")
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
    return code, status


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, BotoConnectionError | HTTPClientError):
        return True
    if isinstance(exc, ClientError):
        code, status = _client_error_details(exc)
        return code in THROTTLE_ERROR_CODES or status >= 500
    return False


def _is_authorization(exc: BaseException) -> bool:
    if isinstance(exc, NoCredentialsError):
        return True
    if isinstance(exc, ClientError):
        code, status = _client_error_details(exc)
        return code in AUTH_ERROR_CODES or status in AUTH_STATUS_CODES
    return False


class S3StorageBackend:
    """``StorageBackend`` over an S3 bucket.

    Only keys starting with ``backup_`` are listed.  Puts are conditional
    (``IfNoneMatch="*"``) so an existing blob is never overwritten.

    Args:
        bucket: Bucket name.
        region: AWS region.
        access_key_id: Optional explicit access key.  When omitted, the
            default AWS credential chain is used.
        secret_access_key: Secret for ``access_key_id``.
        endpoint_url: Optional endpoint for S3-compatible services.
        timeout: Seconds allowed per attempt.
        attempts: Total attempts for transient failures.
        retry_wait: Seconds between attempts.
    """

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        endpoint_url: str | None = None,
        timeout: float = 30.0,
        attempts: int = DEFAULT_ATTEMPTS,
        retry_wait: float = DEFAULT_WAIT_SECONDS,
    ) -> None:
        self._bucket = bucket
        self._endpoint_url = endpoint_url
        self._timeout = timeout
        self._attempts = attempts
        self._retry_wait = retry_wait
        self._session = aioboto3.Session(
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )

    def _client(self):
        return self._session.client("s3", endpoint_url=self._endpoint_url)

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
            if _is_authorization(e):
                raise StorageAuthorizationError(
                    f"S3 rejected credentials during {action}: {e}"
                ) from e
            raise StorageError(f"S3 {action} failed: {e}") from e

    async def put(self, name: str, data: bytes) -> None:
        async def _put() -> None:
            async with self._client() as s3:
                await s3.put_object(
                    Bucket=self._bucket,
                    Key=name,
                    Body=data,
                    ContentType=CONTENT_TYPE,
                    IfNoneMatch="*",
                )

        await self._call(f"put '{name}'", _put)
        logger.debug(f"Uploaded {name} ({len(data)} bytes) to s3://{self._bucket}")

    async def get(self, name: str) -> bytes:
        async def _get() -> bytes:
            async with self._client() as s3:
                response = await s3.get_object(Bucket=self._bucket, Key=name)
                return await response["Body"].read()

        return await self._call(f"get '{name}'", _get)

    async def list(self) -> list[BlobInfo]:
        async def _list() -> list[BlobInfo]:
            blobs: list[BlobInfo] = []
            async with self._client() as s3:
                paginator = s3.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=self._bucket, Prefix=KEY_PREFIX):
                    for obj in page.get("Contents", []):
                        blobs.append(
                            BlobInfo(
                                name=obj["Key"],
                                created_at=obj.get("LastModified"),
                                size=obj.get("Size"),
                            )
                        )
            return blobs

        return await self._call("list", _list)

    async def delete(self, name: str) -> None:
        async def _delete() -> None:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self._bucket, Key=name)

        await self._call(f"delete '{name}'", _delete)

"""Tests for the S3 and Supabase storage backends (clients mocked)."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import botocore.session
import httpx
import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from db_backup.errors import StorageAuthorizationError, StorageError
from db_backup.storage.s3 import S3StorageBackend
from db_backup.storage.supabase import LIST_PAGE_SIZE, SupabaseStorageBackend

NAME = "backup_2026-01-15_09-00-00-000000.enc"


def _client_error(code: str, status: int) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        "PutObject",
    )


# ------------------------------------------------------------------
# S3
# ------------------------------------------------------------------


def _s3_backend(s3_client: MagicMock, **kwargs) -> tuple[S3StorageBackend, MagicMock]:
    """Build an S3StorageBackend whose aioboto3 session yields ``s3_client``."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=s3_client)
    context.__aexit__ = AsyncMock(return_value=False)
    session = MagicMock()
    session.client.return_value = context

    with patch("db_backup.storage.s3.aioboto3.Session", return_value=session):
        backend = S3StorageBackend(bucket="acme-backups", region="eu-west-1", retry_wait=0, **kwargs)
    return backend, session


class TestS3StorageBackend:
    """Calls, immutability and error mapping."""

    async def test_put_is_conditional(self):
        s3 = MagicMock()
        s3.put_object = AsyncMock()
        backend, _ = _s3_backend(s3)

        await backend.put(NAME, b"blob")

        kwargs = s3.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "acme-backups"
        assert kwargs["Key"] == NAME
        assert kwargs["Body"] == b"blob"
        assert kwargs["IfNoneMatch"] == "*"

    def test_installed_botocore_accepts_if_none_match(self):
        model = botocore.session.get_session().get_service_model("s3")
        assert "IfNoneMatch" in model.operation_model("PutObject").input_shape.members

    async def test_get_reads_body(self):
        body = MagicMock()
        body.read = AsyncMock(return_value=b"blob")
        s3 = MagicMock()
        s3.get_object = AsyncMock(return_value={"Body": body})
        backend, _ = _s3_backend(s3)

        assert await backend.get(NAME) == b"blob"

    async def test_list_pages_with_prefix(self):
        modified = datetime(2026, 1, 15, 9, tzinfo=timezone.utc)

        async def _pages(**kwargs):
            yield {"Contents": [{"Key": NAME, "LastModified": modified, "Size": 10}]}
            yield {}

        paginator = MagicMock()
        paginator.paginate = MagicMock(side_effect=_pages)
        s3 = MagicMock()
        s3.get_paginator.return_value = paginator
        backend, _ = _s3_backend(s3)

        blobs = await backend.list()

        assert [(b.name, b.created_at, b.size) for b in blobs] == [(NAME, modified, 10)]
        assert paginator.paginate.call_args.kwargs == {"Bucket": "acme-backups", "Prefix": "backup_"}

    async def test_delete(self):
        s3 = MagicMock()
        s3.delete_object = AsyncMock()
        backend, _ = _s3_backend(s3)

        await backend.delete(NAME)

        s3.delete_object.assert_awaited_once_with(Bucket="acme-backups", Key=NAME)

    async def test_transient_error_retried_once(self):
        s3 = MagicMock()
        s3.put_object = AsyncMock(side_effect=[_client_error("SlowDown", 503), None])
        backend, _ = _s3_backend(s3)

        await backend.put(NAME, b"blob")

        assert s3.put_object.await_count == 2

    async def test_persistent_transient_error_gives_up(self):
        s3 = MagicMock()
        s3.put_object = AsyncMock(side_effect=_client_error("InternalError", 500))
        backend, _ = _s3_backend(s3)

        with pytest.raises(StorageError) as exc_info:
            await backend.put(NAME, b"blob")

        assert not isinstance(exc_info.value, StorageAuthorizationError)
        assert s3.put_object.await_count == 2

    async def test_access_denied_not_retried(self):
        s3 = MagicMock()
        s3.get_object = AsyncMock(side_effect=_client_error("AccessDenied", 403))
        backend, _ = _s3_backend(s3)

        with pytest.raises(StorageAuthorizationError):
            await backend.get(NAME)

        assert s3.get_object.await_count == 1

    async def test_no_credentials_is_authorization_error(self):
        s3 = MagicMock()
        s3.delete_object = AsyncMock(side_effect=NoCredentialsError())
        backend, _ = _s3_backend(s3)

        with pytest.raises(StorageAuthorizationError):
            await backend.delete(NAME)

    async def test_existing_key_is_storage_error(self):
        s3 = MagicMock()
        s3.put_object = AsyncMock(side_effect=_client_error("PreconditionFailed", 412))
        backend, _ = _s3_backend(s3)

        with pytest.raises(StorageError, match="PreconditionFailed"):
            await backend.put(NAME, b"blob")

        assert s3.put_object.await_count == 1

    async def test_timeout_retried_then_fails(self):
        async def _hang(**kwargs):
            await asyncio.sleep(5)

        s3 = MagicMock()
        s3.get_object = AsyncMock(side_effect=_hang)
        backend, _ = _s3_backend(s3, timeout=0.01)

        with pytest.raises(StorageError):
            await backend.get(NAME)

        assert s3.get_object.await_count == 2

    def test_session_gets_explicit_credentials(self):
        with patch("db_backup.storage.s3.aioboto3.Session") as session_cls:
            S3StorageBackend(
                bucket="b", region="us-east-1", access_key_id="AKIA", secret_access_key="secret"
            )
        session_cls.assert_called_once_with(
            aws_access_key_id="AKIA",
            aws_secret_access_key="secret",
            region_name="us-east-1",
        )


# ------------------------------------------------------------------
# Supabase Storage
# ------------------------------------------------------------------


class _StorageApiError(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status


def _supabase_backend() -> tuple[SupabaseStorageBackend, MagicMock]:
    bucket = MagicMock()
    bucket.upload = AsyncMock()
    bucket.download = AsyncMock(return_value=b"blob")
    bucket.list = AsyncMock(return_value=[])
    bucket.remove = AsyncMock()

    client = MagicMock()
    client.storage.from_.return_value = bucket
    lazy = MagicMock()
    lazy.get = AsyncMock(return_value=client)

    return SupabaseStorageBackend(lazy, bucket="backups", retry_wait=0), bucket


class TestSupabaseStorageBackend:
    """Bucket API calls and error mapping."""

    async def test_upload_never_upserts(self):
        backend, bucket = _supabase_backend()

        await backend.put(NAME, b"blob")

        args, kwargs = bucket.upload.call_args
        assert args == (NAME, b"blob")
        assert kwargs["file_options"]["upsert"] == "false"

    async def test_download(self):
        backend, bucket = _supabase_backend()
        assert await backend.get(NAME) == b"blob"
        bucket.download.assert_awaited_once_with(NAME)

    async def test_list_pages_and_skips_folders(self):
        backend, bucket = _supabase_backend()
        first = [
            {"id": str(i), "name": f"backup_{i}.enc", "created_at": "2026-01-15T09:00:00Z", "metadata": {"size": 5}}
            for i in range(LIST_PAGE_SIZE)
        ]
        second = [{"id": None, "name": "archive", "metadata": None}]
        bucket.list = AsyncMock(side_effect=[first, second])

        blobs = await backend.list()

        assert len(blobs) == LIST_PAGE_SIZE
        assert blobs[0].size == 5
        assert blobs[0].created_at == datetime(2026, 1, 15, 9, tzinfo=timezone.utc)
        offsets = [call.args[1]["offset"] for call in bucket.list.call_args_list]
        assert offsets == [0, LIST_PAGE_SIZE]

    async def test_remove(self):
        backend, bucket = _supabase_backend()
        await backend.delete(NAME)
        bucket.remove.assert_awaited_once_with([NAME])

    async def test_forbidden_not_retried(self):
        backend, bucket = _supabase_backend()
        bucket.download = AsyncMock(side_effect=_StorageApiError(403))

        with pytest.raises(StorageAuthorizationError):
            await backend.get(NAME)

        assert bucket.download.await_count == 1

    async def test_connection_error_retried_once(self):
        backend, bucket = _supabase_backend()
        bucket.upload = AsyncMock(side_effect=[httpx.ConnectError("reset"), None])

        await backend.put(NAME, b"blob")

        assert bucket.upload.await_count == 2

    async def test_conflict_is_storage_error(self):
        backend, bucket = _supabase_backend()
        bucket.upload = AsyncMock(side_effect=_StorageApiError(409))

        with pytest.raises(StorageError) as exc_info:
            await backend.put(NAME, b"blob")

        assert not isinstance(exc_info.value, StorageAuthorizationError)
        assert bucket.upload.await_count == 1

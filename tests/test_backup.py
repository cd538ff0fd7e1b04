"""Tests for snapshot collection and backup creation."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from db_backup.backup.backup_restore import create_backup, load_backup
from db_backup.backup.collector import collect_snapshot
from db_backup.backup.naming import make_filename
from db_backup.errors import StorageAuthorizationError, StorageError

from fakes import InMemoryDataSource, InMemoryStorage, RecordingNotifier

T1 = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)
T2 = T1 + timedelta(hours=1)
T3 = T1 + timedelta(hours=2)


def _source(**kwargs) -> InMemoryDataSource:
    tables = {
        "clients": [{"id": 1, "name": "A"}],
        "orders": [{"id": 10, "client_id": 1, "total": "9.99"}],
    }
    return InMemoryDataSource(tables, **kwargs)


# ------------------------------------------------------------------
# Collector
# ------------------------------------------------------------------


class TestCollectSnapshot:
    """Per-table fetch failures are skipped, not fatal."""

    async def test_reads_every_allow_listed_table(self):
        source = _source()
        snapshot, skipped = await collect_snapshot(source)
        assert set(snapshot) == {"clients", "orders"}
        assert skipped == []

    async def test_failed_table_is_skipped(self):
        source = _source(fail_fetch={"orders"})
        snapshot, skipped = await collect_snapshot(source)
        assert set(snapshot) == {"clients"}
        assert skipped == ["orders"]

    async def test_explicit_table_list(self):
        source = _source()
        snapshot, _ = await collect_snapshot(source, tables=["orders"])
        assert list(snapshot) == ["orders"]


# ------------------------------------------------------------------
# Full backups
# ------------------------------------------------------------------


class TestCreateFullBackup:
    """Full backups store every collected table."""

    async def test_writes_one_sealed_blob(self, envelope):
        storage = InMemoryStorage()
        result = await create_backup(_source(), storage, envelope, now=T1)

        assert result.filename == make_filename(T1, incremental=False)
        assert not result.is_incremental
        assert result.fallback_reason is None
        assert list(storage.blobs) == [result.filename]

        descriptor = await load_backup(storage, envelope, result.filename)
        assert descriptor.version == "1.0.0"
        assert descriptor.tables["clients"] == [{"id": 1, "name": "A"}]
        assert descriptor.changes is None
        assert descriptor.skipped_tables == []

    async def test_blob_is_encrypted(self, envelope):
        storage = InMemoryStorage()
        result = await create_backup(_source(), storage, envelope, now=T1)
        assert b"client_id" not in storage.blobs[result.filename]

    async def test_skipped_tables_recorded(self, envelope):
        storage = InMemoryStorage()
        result = await create_backup(_source(fail_fetch={"orders"}), storage, envelope, now=T1)

        assert result.skipped_tables == ["orders"]
        descriptor = await load_backup(storage, envelope, result.filename)
        assert "orders" not in descriptor.tables
        assert descriptor.skipped_tables == ["orders"]

    async def test_success_notification(self, envelope):
        notifier = RecordingNotifier()
        await create_backup(
            _source(), InMemoryStorage(), envelope, notifier=notifier, recipient="ops@example.com", now=T1
        )
        assert notifier.messages[0][0] == "ops@example.com"
        assert notifier.subjects == ["Backup Created"]

    async def test_notifier_failure_does_not_fail_backup(self, envelope):
        storage = InMemoryStorage()
        result = await create_backup(
            _source(), storage, envelope, notifier=RecordingNotifier(fail=True), now=T1
        )
        assert result.filename in storage.blobs

    async def test_storage_failure_notifies_and_raises(self, envelope):
        storage = InMemoryStorage()
        storage.put = AsyncMock(side_effect=StorageError("bucket unavailable"))
        notifier = RecordingNotifier()

        with pytest.raises(StorageError):
            await create_backup(_source(), storage, envelope, notifier=notifier, now=T1)

        assert notifier.subjects == ["Backup Failed"]
        assert "bucket unavailable" in notifier.messages[0][2]


# ------------------------------------------------------------------
# Incremental backups
# ------------------------------------------------------------------


class TestCreateIncrementalBackup:
    """Incremental backups diff against the newest valid backup."""

    async def test_diff_against_previous_full(self, envelope):
        source = _source()
        storage = InMemoryStorage()
        full = await create_backup(source, storage, envelope, now=T1)

        source.tables["clients"] = [{"id": 1, "name": "B"}, {"id": 2, "name": "C"}]
        result = await create_backup(source, storage, envelope, incremental=True, now=T2)

        assert result.is_incremental
        assert result.filename.endswith("_inc.enc")
        descriptor = await load_backup(storage, envelope, result.filename)
        assert descriptor.base_backup == full.filename
        assert descriptor.tables is None
        clients = descriptor.changes["clients"]
        assert clients.added == [{"id": 2, "name": "C"}]
        assert clients.modified == [{"id": 1, "name": "B"}]
        assert clients.deleted == []
        assert descriptor.changes["orders"].is_empty

    async def test_diff_against_previous_incremental(self, envelope):
        source = _source()
        storage = InMemoryStorage()
        await create_backup(source, storage, envelope, now=T1)
        source.tables["clients"].append({"id": 2, "name": "C"})
        first_inc = await create_backup(source, storage, envelope, incremental=True, now=T2)

        source.tables["clients"] = [{"id": 1, "name": "A"}]
        result = await create_backup(source, storage, envelope, incremental=True, now=T3)

        descriptor = await load_backup(storage, envelope, result.filename)
        assert descriptor.base_backup == first_inc.filename
        assert descriptor.changes["clients"].deleted == [2]
        assert descriptor.changes["clients"].added == []

    async def test_no_previous_backup_falls_back_to_full(self, envelope):
        storage = InMemoryStorage()
        result = await create_backup(_source(), storage, envelope, incremental=True, now=T1)

        assert not result.is_incremental
        assert result.requested_incremental
        assert result.fallback_reason == "no previous backup found"
        descriptor = await load_backup(storage, envelope, result.filename)
        assert descriptor.tables is not None

    async def test_corrupt_latest_falls_back_to_full(self, envelope):
        source = _source()
        storage = InMemoryStorage()
        await create_backup(source, storage, envelope, now=T1)
        corrupt = make_filename(T2, incremental=False)
        storage.blobs[corrupt] = b'{"encrypted": "AAAA", "iv": "AAAA"}'

        result = await create_backup(source, storage, envelope, incremental=True, now=T3)

        assert not result.is_incremental
        assert corrupt in result.fallback_reason
        assert "unusable" in result.fallback_reason

    async def test_base_missing_a_table_falls_back_to_full(self, envelope):
        source = _source(fail_fetch={"orders"})
        storage = InMemoryStorage()
        await create_backup(source, storage, envelope, now=T1)

        source.fail_fetch.clear()
        result = await create_backup(source, storage, envelope, incremental=True, now=T2)

        assert not result.is_incremental
        assert "lacks tables: orders" in result.fallback_reason

    async def test_listing_authorization_error_propagates(self, envelope):
        storage = InMemoryStorage()
        storage.list = AsyncMock(side_effect=StorageAuthorizationError("403 Forbidden"))
        notifier = RecordingNotifier()

        with pytest.raises(StorageAuthorizationError):
            await create_backup(_source(), storage, envelope, incremental=True, notifier=notifier, now=T1)

        assert notifier.subjects == ["Backup Failed"]
        assert storage.blobs == {}

    async def test_fallback_noted_in_notification(self, envelope):
        notifier = RecordingNotifier()
        await create_backup(
            _source(), InMemoryStorage(), envelope, incremental=True, notifier=notifier, now=T1
        )
        assert "no previous backup found" in notifier.messages[0][2]

"""Backup and restore orchestration.

Backups are built entirely in memory: snapshot, optional diff against the
newest valid backup, checksum, compression and encryption.  The single
``storage.put`` at the end is the only durable step, so a failure anywhere
earlier leaves nothing behind and needs no rollback.

Restore resolves the incremental chain iteratively (target -> ... -> full
root), verifies every link before touching the database, then replays the
chain root to leaf.  Restore is best-effort per table: a table that fails is
logged and recorded in the summary, and the next table is still restored.

Usage:
    from db_backup.backup.backup_restore import create_backup, restore_backup

    result = await create_backup(adapter, storage, envelope, incremental=True)
    summary = await restore_backup(adapter, storage, envelope, result.filename)
"""

import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from db_backup.adapters.base import DataSource
from db_backup.backup.collector import collect_snapshot
from db_backup.backup.diff import apply_changes, diff_snapshot
from db_backup.backup.naming import make_filename, newest_first
from db_backup.codec.envelope import Envelope
from db_backup.codec.integrity import seal, validate_descriptor, verify_checksum
from db_backup.errors import (
    BackupError,
    CodecError,
    IntegrityError,
    RestoreApplyError,
    StorageAuthorizationError,
)
from db_backup.models import (
    BackupDescriptor,
    BackupResult,
    BlobInfo,
    RestoreSummary,
    TableRestoreCounts,
    TableSnapshot,
)
from db_backup.notify import (
    Notifier,
    backup_created_message,
    backup_delete_failed_message,
    backup_deleted_message,
    backup_failed_message,
    restore_failed_message,
    restore_finished_message,
    send_notification,
)
from db_backup.storage.base import StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000


# ============================================================================
# Loading and Verification
# ============================================================================


async def load_backup(
    storage: StorageBackend,
    envelope: Envelope,
    filename: str,
) -> BackupDescriptor:
    """Download, decode and verify one backup.

    Raises:
        StorageError: If the blob cannot be downloaded.
        CodecError: If the blob cannot be decoded or is structurally invalid.
        IntegrityError: If the checksum is missing or does not match.
    """
    blob = await storage.get(filename)
    payload = envelope.decode(blob)
    verify_checksum(payload)

    report = validate_descriptor(payload)
    if report["errors"]:
        raise CodecError(f"Invalid backup {filename}: {'; '.join(report['errors'])}")
    for warning in report["warnings"]:
        logger.warning(f"{filename}: {warning}")

    try:
        descriptor = BackupDescriptor.model_validate(payload)
    except ValidationError as e:
        raise CodecError(f"Invalid backup {filename}: {e}") from e

    if descriptor.filename != filename:
        logger.warning(f"Backup stored as {filename} describes itself as {descriptor.filename}")
    return descriptor


async def resolve_chain(
    storage: StorageBackend,
    envelope: Envelope,
    filename: str,
) -> list[BackupDescriptor]:
    """Follow ``baseBackup`` pointers from ``filename`` to its full backup.

    Every link is downloaded and verified.

    Returns:
        Descriptors ordered root (full backup) first, ``filename`` last.

    Raises:
        IntegrityError: If the chain loops.
        StorageError, CodecError, IntegrityError: If any link fails to load.
    """
    chain: list[BackupDescriptor] = []
    seen: set[str] = set()
    name: str | None = filename

    while name is not None:
        if name in seen:
            raise IntegrityError(f"Incremental chain of {filename} loops back to {name}")
        seen.add(name)

        descriptor = await load_backup(storage, envelope, name)
        chain.append(descriptor)
        name = descriptor.base_backup if descriptor.is_incremental else None

    chain.reverse()
    return chain


def materialize(chain: list[BackupDescriptor]) -> TableSnapshot:
    """Reconstruct table contents at the last link of a resolved chain."""
    state: TableSnapshot = dict(chain[0].tables or {})
    for descriptor in chain[1:]:
        state = apply_changes(state, descriptor.changes or {})
    return state


async def verify_backup(
    storage: StorageBackend,
    envelope: Envelope,
    filename: str,
) -> dict:
    """Check that a backup and every backup it depends on are usable.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        ``warnings`` (list[str]) and ``chain`` (list[str], root first).
    """
    errors: list[str] = []
    warnings: list[str] = []
    chain: list[str] = []

    try:
        descriptors = await resolve_chain(storage, envelope, filename)
    except BackupError as e:
        errors.append(f"{type(e).__name__}: {e}")
    else:
        chain = [d.filename for d in descriptors]
        for descriptor in descriptors:
            if descriptor.skipped_tables:
                warnings.append(
                    f"{descriptor.filename} is partial, skipped tables: "
                    f"{', '.join(descriptor.skipped_tables)}"
                )

    return {"valid": not errors, "errors": errors, "warnings": warnings, "chain": chain}


# ============================================================================
# Backup
# ============================================================================


async def _find_incremental_base(
    storage: StorageBackend,
    envelope: Envelope,
) -> tuple[str | None, TableSnapshot | None, str | None]:
    """Pick the newest backup and reconstruct its table state.

    Returns:
        Tuple of (base filename, base state, fallback reason).  When no
        usable base exists the first two are ``None`` and the reason says
        why.

    Raises:
        StorageError: If listing fails.
        StorageAuthorizationError: If the backend rejects our credentials.
    """
    blobs = newest_first(await storage.list())
    if not blobs:
        return None, None, "no previous backup found"

    latest = blobs[0].name
    try:
        state = materialize(await resolve_chain(storage, envelope, latest))
    except StorageAuthorizationError:
        raise
    except (BackupError, ValueError) as e:
        return None, None, f"latest backup {latest} is unusable: {e}"

    return latest, state, None


async def _build_backup(
    source: DataSource,
    storage: StorageBackend,
    envelope: Envelope,
    incremental: bool,
    now: datetime | None,
) -> BackupResult:
    created_at = now or datetime.now(timezone.utc)

    base_name: str | None = None
    base_state: TableSnapshot | None = None
    fallback_reason: str | None = None
    if incremental:
        base_name, base_state, fallback_reason = await _find_incremental_base(storage, envelope)

    snapshot, skipped = await collect_snapshot(source)

    changes = None
    if base_state is not None:
        # A table the base never captured cannot be expressed as a delta
        missing = [t for t in snapshot if t not in base_state]
        if missing:
            fallback_reason = f"base backup {base_name} lacks tables: {', '.join(missing)}"
        else:
            try:
                changes = diff_snapshot(snapshot, base_state)
            except ValueError as e:
                fallback_reason = f"cannot diff against {base_name}: {e}"

    if fallback_reason:
        logger.warning(f"Incremental backup requested, writing full backup instead: {fallback_reason}")

    is_incremental = changes is not None
    filename = make_filename(created_at, is_incremental)

    descriptor = BackupDescriptor(
        filename=filename,
        timestamp=created_at.isoformat(),
        is_incremental=is_incremental,
        base_backup=base_name if is_incremental else None,
        tables=None if is_incremental else snapshot,
        changes=changes,
        skipped_tables=skipped,
    )
    blob = envelope.encode(seal(descriptor.to_payload()))

    await storage.put(filename, blob)
    logger.info(
        f"Created {'incremental' if is_incremental else 'full'} backup {filename} "
        f"({len(blob)} bytes)"
    )

    return BackupResult(
        filename=filename,
        is_incremental=is_incremental,
        requested_incremental=incremental,
        fallback_reason=fallback_reason,
        skipped_tables=skipped,
    )


async def create_backup(
    source: DataSource,
    storage: StorageBackend,
    envelope: Envelope,
    *,
    incremental: bool = False,
    notifier: Notifier | None = None,
    recipient: str = "",
    now: datetime | None = None,
) -> BackupResult:
    """Snapshot the data source and store an encrypted backup.

    When ``incremental`` is set, the newest stored backup is verified and
    used as the diff base.  If there is none, or it is unusable, a full
    backup is written and ``BackupResult.fallback_reason`` says why.

    Args:
        source: Data source to snapshot.
        storage: Where to write the backup.
        envelope: Compression/encryption codec.
        incremental: Request an incremental backup.
        notifier: Receives a success or failure notification.
        recipient: Notification recipient.
        now: Creation time (defaults to the current UTC time).

    Returns:
        ``BackupResult`` with the stored filename.

    Raises:
        BackupError: Any failure, after the failure notification is sent.

    Example:
        result = await create_backup(adapter, storage, envelope, incremental=True)
        if result.fallback_reason:
            print(f"Full backup written: {result.fallback_reason}")
    """
    try:
        result = await _build_backup(source, storage, envelope, incremental, now)
    except Exception as e:
        logger.error(f"Backup failed: {e}")
        subject, body = backup_failed_message(e)
        await send_notification(notifier, recipient, subject, body)
        raise

    subject, body = backup_created_message(result)
    await send_notification(notifier, recipient, subject, body)
    return result


# ============================================================================
# Restore
# ============================================================================


def _chunks(items: list[Any], size: int) -> Iterator[list[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def _clear_table(source: DataSource, table: str) -> None:
    """Empty a table, preferring truncate over delete-all."""
    try:
        await source.truncate(table)
        return
    except NotImplementedError:
        pass
    except Exception as e:
        logger.warning(f"Truncate of {table} failed ({e}); falling back to delete-all")
    await source.delete_all(table)


def _record_failure(
    summary: RestoreSummary,
    counts: TableRestoreCounts,
    table: str,
    exc: Exception,
    failed: int,
) -> None:
    error = RestoreApplyError(table, str(exc))
    logger.error(f"{error}; continuing with next table")
    summary.errors.append(str(error))
    counts.failed += failed


async def _restore_full(
    source: DataSource,
    descriptor: BackupDescriptor,
    summary: RestoreSummary,
    chunk_size: int,
) -> None:
    if descriptor.skipped_tables:
        logger.warning(
            f"{descriptor.filename} is partial; tables left untouched: "
            f"{', '.join(descriptor.skipped_tables)}"
        )

    for table, records in (descriptor.tables or {}).items():
        counts = summary.counts_for(table)
        inserted = 0
        try:
            await _clear_table(source, table)
            for chunk in _chunks(records, chunk_size):
                await source.bulk_insert(table, chunk)
                inserted += len(chunk)
        except Exception as e:
            _record_failure(summary, counts, table, e, failed=len(records) - inserted)
        finally:
            counts.inserted += inserted


async def _restore_incremental(
    source: DataSource,
    descriptor: BackupDescriptor,
    summary: RestoreSummary,
    chunk_size: int,
) -> None:
    for table, changes in (descriptor.changes or {}).items():
        counts = summary.counts_for(table)
        total = len(changes.added) + len(changes.modified) + len(changes.deleted)
        done = 0
        try:
            for chunk in _chunks(changes.added, chunk_size):
                await source.bulk_insert(table, chunk)
                counts.inserted += len(chunk)
                done += len(chunk)

            # Delete-then-insert, so no partial-update semantics
            for chunk in _chunks(changes.modified, chunk_size):
                await source.delete_by_ids(table, [record["id"] for record in chunk])
                await source.bulk_insert(table, chunk)
                counts.inserted += len(chunk)
                done += len(chunk)

            for chunk in _chunks(changes.deleted, chunk_size):
                await source.delete_by_ids(table, chunk)
                counts.deleted += len(chunk)
                done += len(chunk)
        except Exception as e:
            _record_failure(summary, counts, table, e, failed=total - done)


async def restore_backup(
    source: DataSource,
    storage: StorageBackend,
    envelope: Envelope,
    filename: str,
    *,
    notifier: Notifier | None = None,
    recipient: str = "",
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> RestoreSummary:
    """Restore a backup, replaying its incremental chain root to leaf.

    The whole chain is downloaded and verified first; any link that fails
    verification aborts the restore before the database is touched.

    Args:
        source: Data source to write into.
        storage: Where the backups are stored.
        envelope: Compression/encryption codec.
        filename: Backup to restore.
        notifier: Receives a success or failure notification.
        recipient: Notification recipient.
        chunk_size: Maximum rows per ``bulk_insert``/``delete_by_ids`` call.

    Returns:
        ``RestoreSummary`` with per-table counts.  ``summary.errors`` lists
        tables that failed; the restore still completed for the others.

    Raises:
        IntegrityError: If any link fails checksum verification.
        CodecError: If any link cannot be decoded.
        StorageError: If any link cannot be downloaded.
    """
    try:
        chain = await resolve_chain(storage, envelope, filename)
        summary = RestoreSummary(filename=filename, chain=[d.filename for d in chain])

        for descriptor in chain:
            logger.info(
                f"Applying {'incremental' if descriptor.is_incremental else 'full'} "
                f"backup {descriptor.filename}"
            )
            if descriptor.is_incremental:
                await _restore_incremental(source, descriptor, summary, chunk_size)
            else:
                await _restore_full(source, descriptor, summary, chunk_size)
    except Exception as e:
        logger.error(f"Restore of {filename} failed: {e}")
        subject, body = restore_failed_message(filename, e)
        await send_notification(notifier, recipient, subject, body)
        raise

    if summary.errors:
        logger.warning(f"Restore of {filename} finished with {len(summary.errors)} table failures")
    else:
        logger.info(f"Restored {filename} (chain of {len(chain)})")

    subject, body = restore_finished_message(summary)
    await send_notification(notifier, recipient, subject, body)
    return summary


# ============================================================================
# Listing and Deletion
# ============================================================================


async def list_backups(storage: StorageBackend) -> list[BlobInfo]:
    """Return stored backups, most recent first."""
    return newest_first(await storage.list())


async def delete_backup(
    storage: StorageBackend,
    filename: str,
    notifier: Notifier | None = None,
    recipient: str = "",
) -> None:
    """Delete one backup blob.

    Incremental backups built on top of it become unrestorable; callers
    deleting a full backup are expected to know that.
    """
    try:
        await storage.delete(filename)
    except Exception as e:
        logger.error(f"Deleting {filename} failed: {e}")
        subject, body = backup_delete_failed_message(filename, e)
        await send_notification(notifier, recipient, subject, body)
        raise

    logger.info(f"Deleted backup {filename}")
    subject, body = backup_deleted_message(filename)
    await send_notification(notifier, recipient, subject, body)

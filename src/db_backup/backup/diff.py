"""Record-level diff between two snapshots.

Records are matched by primary key.  A record counts as modified when its
canonical JSON (sorted keys) differs from the base record's, so field order
never produces a false positive.

Usage:
    from db_backup.backup.diff import diff_table, apply_changes

    changes = diff_table(current_rows, base_rows)
    restored = apply_changes({"clients": base_rows}, {"clients": changes})
"""

import copy
from typing import Any

from db_backup.codec.integrity import canonical_json
from db_backup.models import Record, TableChanges, TableSnapshot


def _index(records: list[Record], pk: str, label: str) -> dict[Any, Record]:
    indexed: dict[Any, Record] = {}
    for record in records:
        if pk not in record:
            raise ValueError(f"{label} record missing primary key '{pk}': {record}")
        indexed[_key(record[pk])] = record
    return indexed


def _key(value: Any) -> Any:
    # ids may be unhashable JSON values (e.g. composite keys stored as lists)
    if isinstance(value, list | dict):
        return canonical_json(value)
    return value


def diff_table(
    current: list[Record],
    base: list[Record],
    pk: str = "id",
) -> TableChanges:
    """Compute added/modified/deleted between ``base`` and ``current``.

    Args:
        current: Records as they are now.
        base: Records as of the base backup.
        pk: Primary key field.

    Returns:
        ``TableChanges`` with records in ``current`` order and deleted ids in
        ``base`` order.

    Raises:
        ValueError: If a record has no primary key.
    """
    base_index = _index(base, pk, "Base")
    current_index = _index(current, pk, "Current")

    changes = TableChanges()
    for record in current:
        previous = base_index.get(_key(record[pk]))
        if previous is None:
            changes.added.append(record)
        elif canonical_json(record) != canonical_json(previous):
            changes.modified.append(record)

    for record in base:
        if _key(record[pk]) not in current_index:
            changes.deleted.append(record[pk])

    return changes


def diff_snapshot(
    current: TableSnapshot,
    base: TableSnapshot,
    pk: str = "id",
) -> dict[str, TableChanges]:
    """Diff every table in ``current`` against the same table in ``base``.

    Tables missing from ``base`` are treated as empty (all records added).
    Tables missing from ``current`` are not diffed: a table absent from the
    current snapshot was skipped, not emptied.
    """
    return {
        table: diff_table(records, base.get(table) or [], pk=pk)
        for table, records in current.items()
    }


def apply_changes(
    state: TableSnapshot,
    changes: dict[str, TableChanges],
    pk: str = "id",
) -> TableSnapshot:
    """Return a new snapshot with an incremental delta replayed onto ``state``.

    Mirrors what restore does to the database: added records are appended,
    modified records replace the record with the same key, deleted keys are
    removed.
    """
    result: TableSnapshot = copy.deepcopy(state)
    for table, delta in changes.items():
        rows = _index(result.get(table, []), pk, "Base")
        for record in delta.modified:
            rows.pop(_key(record[pk]), None)
        for record in [*delta.added, *delta.modified]:
            rows[_key(record[pk])] = copy.deepcopy(record)
        for deleted_id in delta.deleted:
            rows.pop(_key(deleted_id), None)
        result[table] = list(rows.values())
    return result

"""Tests for the record-level diff engine."""

import pytest

from db_backup.backup.diff import apply_changes, diff_snapshot, diff_table
from db_backup.models import TableChanges


class TestDiffTable:
    """added / modified / deleted classification."""

    def test_modified_and_added(self):
        base = [{"id": 1, "name": "A"}]
        current = [{"id": 1, "name": "B"}, {"id": 2, "name": "C"}]

        changes = diff_table(current, base)

        assert changes.added == [{"id": 2, "name": "C"}]
        assert changes.modified == [{"id": 1, "name": "B"}]
        assert changes.deleted == []

    def test_deleted_ids(self):
        base = [{"id": 1}, {"id": 2}, {"id": 3}]
        current = [{"id": 2}]
        assert diff_table(current, base).deleted == [1, 3]

    def test_key_order_is_not_a_modification(self):
        base = [{"id": 1, "name": "A", "tier": "gold"}]
        current = [{"tier": "gold", "name": "A", "id": 1}]
        assert diff_table(current, base).is_empty

    def test_nested_value_change_is_a_modification(self):
        base = [{"id": 1, "meta": {"tags": ["a"]}}]
        current = [{"id": 1, "meta": {"tags": ["a", "b"]}}]
        assert diff_table(current, base).modified == current

    def test_empty_base_adds_everything(self):
        current = [{"id": 1}, {"id": 2}]
        changes = diff_table(current, [])
        assert changes.added == current
        assert not changes.modified and not changes.deleted

    def test_empty_current_deletes_everything(self):
        changes = diff_table([], [{"id": "a"}, {"id": "b"}])
        assert changes.deleted == ["a", "b"]
        assert not changes.added and not changes.modified

    def test_custom_primary_key(self):
        base = [{"sku": "X1", "qty": 1}]
        current = [{"sku": "X1", "qty": 2}]
        assert diff_table(current, base, pk="sku").modified == current

    def test_missing_primary_key_raises(self):
        with pytest.raises(ValueError, match="primary key"):
            diff_table([{"name": "no id"}], [])


class TestDiffSnapshot:
    """Whole-snapshot diffs."""

    def test_table_missing_from_base_is_all_added(self):
        changes = diff_snapshot({"orders": [{"id": 1}]}, {})
        assert changes["orders"].added == [{"id": 1}]

    def test_only_current_tables_are_diffed(self):
        changes = diff_snapshot(
            {"clients": [{"id": 1}]},
            {"clients": [{"id": 1}], "orders": [{"id": 9}]},
        )
        assert set(changes) == {"clients"}


class TestApplyChanges:
    """Replaying a delta reproduces the current snapshot."""

    def test_apply_reproduces_current(self):
        base = {"clients": [{"id": 1, "name": "A"}, {"id": 3, "name": "Z"}]}
        current = {"clients": [{"id": 1, "name": "B"}, {"id": 2, "name": "C"}]}

        result = apply_changes(base, diff_snapshot(current, base))

        by_id = {row["id"]: row for row in result["clients"]}
        assert by_id == {1: {"id": 1, "name": "B"}, 2: {"id": 2, "name": "C"}}

    def test_apply_does_not_mutate_state(self):
        base = {"clients": [{"id": 1, "name": "A"}]}
        apply_changes(base, {"clients": TableChanges(modified=[{"id": 1, "name": "B"}])})
        assert base == {"clients": [{"id": 1, "name": "A"}]}

    def test_apply_creates_missing_table(self):
        result = apply_changes({}, {"orders": TableChanges(added=[{"id": 5}])})
        assert result == {"orders": [{"id": 5}]}

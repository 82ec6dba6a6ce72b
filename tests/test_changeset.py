from __future__ import annotations

import datetime
import sys
import unittest
from pathlib import Path
from unittest import mock

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from assignments import ASSIGNMENTS_TABLE, Assignment, AssignmentKey, AssignmentStore, ManuallyPinned, RosterLinked  # noqa: E402
from overlay import PendingEdits  # noqa: E402
from roster import RosterSlot, ShiftSlot  # noqa: E402
from row_store import RowStore, StorageError  # noqa: E402
from sync import (  # noqa: E402
    OP_DELETE,
    OP_INSERT,
    OP_UPDATE,
    PendingDelete,
    PendingInsert,
    apply_changeset,
    compile_changeset,
)

MORNING_TUESDAY = RosterLinked(slot=RosterSlot(2, ShiftSlot.MORNING))


def _store(*assignments: Assignment) -> AssignmentStore:
    return AssignmentStore(assignments)


class CompileChangesetTests(unittest.TestCase):
    def test_clear_on_stored_row_deletes_it(self) -> None:
        store = _store(Assignment(AssignmentKey("T1", 0), ManuallyPinned(person_id="P7"), id=5))
        edits = PendingEdits()
        edits.set_clear(("T1", 0))
        changeset = compile_changeset(edits, store)
        self.assertEqual(changeset.to_delete, [PendingDelete(id=5, key=AssignmentKey("T1", 0))])
        self.assertEqual(changeset.to_insert, [])
        self.assertEqual(changeset.to_update, [])

    def test_replace_on_empty_store_inserts(self) -> None:
        edits = PendingEdits()
        edits.set_replace(("T1", 2), MORNING_TUESDAY)
        changeset = compile_changeset(edits, _store())
        self.assertEqual(changeset.to_insert, [PendingInsert(key=AssignmentKey("T1", 2), payload=MORNING_TUESDAY)])
        self.assertEqual(changeset.to_update, [])
        self.assertEqual(changeset.to_delete, [])

    def test_replace_on_stored_row_updates_by_id(self) -> None:
        store = _store(Assignment(AssignmentKey("T1", 0), ManuallyPinned(person_id="P7"), id=5))
        edits = PendingEdits()
        edits.set_replace(("T1", 0), MORNING_TUESDAY)
        changeset = compile_changeset(edits, store)
        self.assertEqual([(entry.id, entry.payload) for entry in changeset.to_update], [(5, MORNING_TUESDAY)])

    def test_clear_without_stored_row_is_noop(self) -> None:
        edits = PendingEdits()
        edits.set_clear(("T9", 1))
        changeset = compile_changeset(edits, _store())
        self.assertTrue(changeset.is_empty())

    def test_unreadable_row_is_updated_not_duplicated(self) -> None:
        store = AssignmentStore([], [{"id": 8, "item_id": "T4", "parade_day": 3, "shift_type": "??"}])
        edits = PendingEdits()
        edits.set_replace(("T4", 3), ManuallyPinned(person_id="P1"))
        edits.set_clear(("T4", 3))
        changeset = compile_changeset(edits, store)
        self.assertEqual(changeset.delete_ids, [8])

    def test_lists_are_disjoint(self) -> None:
        store = _store(
            Assignment(AssignmentKey("T1", 0), ManuallyPinned(person_id="P1"), id=1),
            Assignment(AssignmentKey("T2", 0), ManuallyPinned(person_id="P2"), id=2),
        )
        edits = PendingEdits()
        edits.set_clear(("T1", 0))
        edits.set_replace(("T2", 0), MORNING_TUESDAY)
        edits.set_replace(("T3", 0), ManuallyPinned(person_id="P3"))
        edits.set_clear(("T4", 0))
        edits.set_replace(("T5", 0), RosterLinked(slot=None))
        changeset = compile_changeset(edits, store)
        inserted = {entry.key for entry in changeset.to_insert}
        updated = {entry.key for entry in changeset.to_update}
        deleted = {entry.key for entry in changeset.to_delete}
        self.assertFalse(inserted & updated)
        self.assertFalse(inserted & deleted)
        self.assertFalse(updated & deleted)
        self.assertEqual(inserted, {AssignmentKey("T3", 0)})
        self.assertEqual(updated, {AssignmentKey("T2", 0)})
        self.assertEqual(deleted, {AssignmentKey("T1", 0)})


class ApplyChangesetTests(unittest.TestCase):
    def _changeset(self):
        store = _store(
            Assignment(AssignmentKey("T1", 0), ManuallyPinned(person_id="P1"), id=1),
            Assignment(AssignmentKey("T2", 0), ManuallyPinned(person_id="P2"), id=2),
        )
        edits = PendingEdits()
        edits.set_clear(("T1", 0))
        edits.set_replace(("T2", 0), ManuallyPinned(person_id="P9", deadline_time=datetime.time(8, 0)))
        edits.set_replace(("T3", 0), MORNING_TUESDAY)
        return compile_changeset(edits, store)

    def test_operations_run_in_order(self) -> None:
        row_store = mock.create_autospec(RowStore, instance=True)
        row_store.insert.return_value = [{"id": 3}]
        result = apply_changeset(row_store, "north", self._changeset())

        self.assertTrue(result.ok)
        self.assertEqual((result.deleted, result.updated, result.inserted), (1, 1, 1))
        row_store.delete_by_ids.assert_called_once_with(ASSIGNMENTS_TABLE, [1])
        row_store.update.assert_called_once_with(
            ASSIGNMENTS_TABLE,
            2,
            {"shift_type": "manual-P9", "manual_person_id": "P9", "deadline_time": datetime.time(8, 0)},
        )
        row_store.insert.assert_called_once_with(
            ASSIGNMENTS_TABLE,
            [
                {
                    "site": "north",
                    "item_id": "T3",
                    "parade_day": 0,
                    "shift_type": "2-morning",
                    "manual_person_id": None,
                    "deadline_time": None,
                }
            ],
        )
        names = [call[0] for call in row_store.method_calls]
        self.assertEqual(names, ["delete_by_ids", "update", "insert"])

    def test_failed_delete_does_not_block_others(self) -> None:
        row_store = mock.create_autospec(RowStore, instance=True)
        row_store.delete_by_ids.side_effect = StorageError("delete", ASSIGNMENTS_TABLE, "locked")
        row_store.insert.return_value = [{"id": 3}]
        with self.assertLogs("sync", level="WARNING"):
            result = apply_changeset(row_store, "north", self._changeset())

        self.assertFalse(result.ok)
        self.assertEqual(result.deleted, 0)
        self.assertEqual(result.updated, 1)
        self.assertEqual(result.inserted, 1)
        self.assertEqual([failure.operation for failure in result.failures], [OP_DELETE])
        self.assertEqual(result.failed_keys(), [AssignmentKey("T1", 0)])

    def test_every_operation_failing_is_reported(self) -> None:
        row_store = mock.create_autospec(RowStore, instance=True)
        row_store.delete_by_ids.side_effect = StorageError("delete", ASSIGNMENTS_TABLE, "down")
        row_store.update.side_effect = StorageError("update", ASSIGNMENTS_TABLE, "down")
        row_store.insert.side_effect = StorageError("insert", ASSIGNMENTS_TABLE, "down")
        with self.assertLogs("sync", level="WARNING"):
            result = apply_changeset(row_store, "north", self._changeset())

        self.assertEqual([failure.operation for failure in result.failures], [OP_DELETE, OP_UPDATE, OP_INSERT])
        summary = result.as_dict()
        self.assertFalse(summary["ok"])
        self.assertEqual(summary["failures"][2]["keys"], [{"task_id": "T3", "parade_day": 0}])

    def test_empty_changeset_touches_nothing(self) -> None:
        row_store = mock.create_autospec(RowStore, instance=True)
        result = apply_changeset(row_store, "north", compile_changeset(PendingEdits(), _store()))
        self.assertTrue(result.ok)
        self.assertEqual(row_store.method_calls, [])


if __name__ == "__main__":
    unittest.main()

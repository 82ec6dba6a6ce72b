from __future__ import annotations

import datetime
import sys
import unittest
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from assignments import (  # noqa: E402
    AssignmentKey,
    AssignmentStore,
    ManuallyPinned,
    RosterLinked,
    decode_payload,
    decode_row,
    encode_payload,
    format_schedule_option,
    parse_schedule_option,
    schedule_options,
)
from roster import RosterSlot, ShiftSlot, WeekOffset  # noqa: E402


class ShiftTagDecodeTests(unittest.TestCase):
    def test_manual_tag_takes_person_from_suffix(self) -> None:
        payload = decode_payload("manual-P7", "P7", None)
        self.assertEqual(payload, ManuallyPinned(person_id="P7"))

    def test_manual_tag_without_suffix_falls_back_to_column(self) -> None:
        payload = decode_payload("manual-", "P8", None)
        self.assertEqual(payload, ManuallyPinned(person_id="P8"))
        self.assertIsNone(decode_payload("manual-", None, None))

    def test_current_week_slot_with_additional_person(self) -> None:
        payload = decode_payload("2-morning", "P3", "07:30:00")
        self.assertIsInstance(payload, RosterLinked)
        self.assertEqual(payload.slot, RosterSlot(2, ShiftSlot.MORNING, WeekOffset.CURRENT))
        self.assertEqual(payload.additional_person_id, "P3")
        self.assertEqual(payload.deadline_time, datetime.time(7, 30))

    def test_previous_saturday_slot(self) -> None:
        payload = decode_payload("prev-6-evening", None, datetime.time(9, 0))
        self.assertEqual(payload.slot, RosterSlot(6, ShiftSlot.EVENING, WeekOffset.PREVIOUS))
        self.assertIsNone(payload.additional_person_id)
        self.assertEqual(payload.deadline_time, datetime.time(9, 0))

    def test_unrecognised_tags_decode_to_none(self) -> None:
        for value in ("", None, "night", "7-morning", "2-night", "prev-", "x-morning", "2morning"):
            with self.subTest(value=value):
                self.assertIsNone(decode_payload(value, None, None))

    def test_bad_deadline_is_dropped(self) -> None:
        payload = decode_payload("1-afternoon", None, "late")
        self.assertIsNone(payload.deadline_time)


class ShiftTagEncodeTests(unittest.TestCase):
    def test_manual_repeats_person_id(self) -> None:
        values = encode_payload(ManuallyPinned(person_id="P7", deadline_time=datetime.time(8, 0)))
        self.assertEqual(values["shift_type"], "manual-P7")
        self.assertEqual(values["manual_person_id"], "P7")
        self.assertEqual(values["deadline_time"], datetime.time(8, 0))

    def test_roster_linked_carries_additional_person(self) -> None:
        slot = RosterSlot(6, ShiftSlot.MORNING, WeekOffset.PREVIOUS)
        values = encode_payload(RosterLinked(slot=slot, additional_person_id="P2"))
        self.assertEqual(values, {"shift_type": "prev-6-morning", "manual_person_id": "P2", "deadline_time": None})

    def test_incomplete_payload_refused(self) -> None:
        with self.assertRaises(ValueError):
            encode_payload(RosterLinked(slot=None))
        with self.assertRaises(ValueError):
            encode_payload(ManuallyPinned(person_id=""))

    def test_stored_values_read_back_unchanged(self) -> None:
        payload = RosterLinked(
            slot=RosterSlot(3, ShiftSlot.EVENING),
            additional_person_id="P5",
            deadline_time=datetime.time(18, 15),
        )
        values = encode_payload(payload)
        self.assertEqual(
            decode_payload(values["shift_type"], values["manual_person_id"], values["deadline_time"]),
            payload,
        )


class ScheduleOptionTests(unittest.TestCase):
    def test_format_and_parse(self) -> None:
        self.assertEqual(format_schedule_option(RosterSlot(0, ShiftSlot.AFTERNOON)), "0-afternoon")
        self.assertEqual(parse_schedule_option(" prev-6-morning "), RosterSlot(6, ShiftSlot.MORNING, WeekOffset.PREVIOUS))
        self.assertIsNone(parse_schedule_option(None))
        self.assertIsNone(parse_schedule_option("-1-morning"))

    def test_options_list_previous_saturday_first(self) -> None:
        options = schedule_options()
        self.assertEqual(len(options), 3 + 7 * 3)
        self.assertEqual([entry["value"] for entry in options[:3]], ["prev-6-morning", "prev-6-afternoon", "prev-6-evening"])
        self.assertEqual(options[3]["value"], "0-morning")
        values = [entry["value"] for entry in options]
        self.assertEqual(len(values), len(set(values)))


class AssignmentStoreTests(unittest.TestCase):
    def test_rows_split_into_decoded_and_unparsed(self) -> None:
        rows = [
            {"id": 1, "item_id": "T1", "parade_day": 0, "shift_type": "0-morning", "manual_person_id": None, "deadline_time": None},
            {"id": 2, "item_id": "T2", "parade_day": 0, "shift_type": "garbage", "manual_person_id": None, "deadline_time": None},
        ]
        store = AssignmentStore.from_rows(rows)
        self.assertEqual(len(store), 1)
        self.assertIn(AssignmentKey("T1", 0), store)
        self.assertNotIn(AssignmentKey("T2", 0), store)
        self.assertIsNone(store.get(AssignmentKey("T2", 0)))
        # Unreadable rows keep their identity.
        self.assertEqual(store.row_id(AssignmentKey("T2", 0)), 2)
        self.assertEqual([row["id"] for row in store.unparsed_rows()], [2])
        self.assertIsNone(store.row_id(AssignmentKey("T3", 0)))

    def test_decode_row_without_key_is_none(self) -> None:
        self.assertIsNone(decode_row({"shift_type": "0-morning"}))
        assignment = decode_row({"id": 4, "item_id": "T1", "parade_day": "3", "shift_type": "manual-P1"})
        self.assertEqual(assignment.key, AssignmentKey("T1", 3))
        self.assertEqual(assignment.id, 4)


if __name__ == "__main__":
    unittest.main()

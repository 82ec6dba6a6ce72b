from __future__ import annotations

import datetime
import sys
import unittest
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from database import day_of_week, normalize_week_start  # noqa: E402
from roster import (  # noqa: E402
    DutyRoster,
    Person,
    RosterSlot,
    RosterSnapshot,
    ShiftSlot,
    WeekOffset,
    previous_saturday,
)

WEEK_START = datetime.date(2024, 3, 3)  # Sunday


def _snapshot(week_start, rows):
    return RosterSnapshot.from_rows(week_start, rows)


class RosterLookupTests(unittest.TestCase):
    def setUp(self) -> None:
        current = _snapshot(
            WEEK_START,
            [
                {"day_of_week": 0, "morning_person_id": "P1", "afternoon_person_id": None, "evening_person_id": "P2"},
                {"day_of_week": 2, "morning_person_id": "P3", "afternoon_person_id": "P4", "evening_person_id": None},
            ],
        )
        previous = _snapshot(
            WEEK_START - datetime.timedelta(days=7),
            [{"day_of_week": 6, "morning_person_id": None, "afternoon_person_id": None, "evening_person_id": "P9"}],
        )
        people = [
            Person("P1", "Noa Levi"),
            Person("P2", "Itai Cohen"),
            Person("P3", "Maya Peretz"),
            Person("P9", "Omer Biton"),
        ]
        self.roster = DutyRoster(current, previous, people)

    def test_current_week_slot_resolves_person(self) -> None:
        slot = RosterSlot(2, ShiftSlot.MORNING)
        self.assertEqual(self.roster.person_id_for(slot), "P3")
        self.assertEqual(self.roster.resolve_person(slot).full_name, "Maya Peretz")

    def test_previous_saturday_reads_last_week(self) -> None:
        slot = previous_saturday(ShiftSlot.EVENING)
        self.assertTrue(slot.is_previous_week)
        self.assertEqual(slot.day_of_week, 6)
        self.assertEqual(self.roster.person_id_for(slot), "P9")
        # The current week has no Saturday row at all.
        self.assertIsNone(self.roster.person_id_for(RosterSlot(6, ShiftSlot.EVENING)))

    def test_missing_day_or_empty_shift_is_none(self) -> None:
        self.assertIsNone(self.roster.person_id_for(RosterSlot(3, ShiftSlot.EVENING)))
        self.assertIsNone(self.roster.person_id_for(RosterSlot(4, ShiftSlot.MORNING)))
        self.assertIsNone(self.roster.person_id_for(RosterSlot(0, ShiftSlot.AFTERNOON)))
        self.assertIsNone(self.roster.resolve_person(RosterSlot(0, ShiftSlot.AFTERNOON)))

    def test_person_on_roster_but_not_in_people_is_none(self) -> None:
        slot = RosterSlot(2, ShiftSlot.AFTERNOON)
        self.assertEqual(self.roster.person_id_for(slot), "P4")
        self.assertIsNone(self.roster.resolve_person(slot))

    def test_unknown_or_blank_person_id(self) -> None:
        self.assertIsNone(self.roster.person("nobody"))
        self.assertIsNone(self.roster.person(None))
        self.assertIsNone(self.roster.person(""))

    def test_empty_roster_answers_none(self) -> None:
        empty = DutyRoster()
        self.assertIsNone(empty.person_id_for(RosterSlot(0, ShiftSlot.MORNING, WeekOffset.PREVIOUS)))
        self.assertEqual(empty.list_people(), [])

    def test_people_sorted_by_name_and_first_name(self) -> None:
        names = [person.full_name for person in self.roster.list_people()]
        self.assertEqual(names, sorted(names))
        self.assertEqual(Person("P1", "Noa Levi").first_name, "Noa")
        self.assertEqual(Person("P0", "").first_name, "")

    def test_rows_with_bad_day_are_skipped(self) -> None:
        snapshot = _snapshot(WEEK_START, [{"day_of_week": "x", "morning_person_id": "P1"}])
        self.assertIsNone(snapshot.person_id(0, ShiftSlot.MORNING))


class WeekMathTests(unittest.TestCase):
    def test_week_starts_on_sunday(self) -> None:
        wednesday = datetime.date(2024, 3, 6)
        self.assertEqual(normalize_week_start(wednesday), WEEK_START)
        self.assertEqual(normalize_week_start(WEEK_START), WEEK_START)
        saturday = datetime.date(2024, 3, 9)
        self.assertEqual(normalize_week_start(saturday), WEEK_START)

    def test_day_of_week_is_sunday_based(self) -> None:
        self.assertEqual(day_of_week(WEEK_START), 0)
        self.assertEqual(day_of_week(datetime.date(2024, 3, 9)), 6)


if __name__ == "__main__":
    unittest.main()

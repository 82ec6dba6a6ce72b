from __future__ import annotations

import datetime
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

APP_DIR = Path(__file__).resolve().parents[1] / "app"
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from board import ParadeBoard  # noqa: E402
from database import Base, ChecklistItem, ItemAssignment, ParadeDayConfig, add_person, upsert_roster_day  # noqa: E402
from row_store import RowStore  # noqa: E402
from validation import validate_board  # noqa: E402

SITE = "north"
WEEK_START = datetime.date(2024, 3, 3)


class BoardValidationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = Path(tempfile.mkdtemp())
        self.engine = create_engine(
            f"sqlite:///{(self.temp_dir / 'parade.db').as_posix()}",
            future=True,
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(self.engine)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)
        with self.session_factory() as session:
            add_person(session, site=SITE, full_name="Noa Levi", person_id="P1")
            session.add_all(
                [
                    ChecklistItem(id="T1", site=SITE, item_name="Vehicle bay", item_order=0),
                    ChecklistItem(id="T2", site=SITE, item_name="Dispatch office", item_order=1),
                    ParadeDayConfig(site=SITE, day_of_week=0),
                    ParadeDayConfig(site=SITE, day_of_week=3),
                ]
            )
            session.commit()
            upsert_roster_day(session, site=SITE, week_start=WEEK_START, day=0, morning="P1")

    def tearDown(self) -> None:
        self.engine.dispose()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _add_rows(self, *rows: dict) -> None:
        with self.session_factory() as session:
            for row in rows:
                session.add(ItemAssignment(site=SITE, **row))
            session.commit()

    def _report(self) -> dict:
        board = ParadeBoard(SITE, row_store=RowStore(self.session_factory), week_start=WEEK_START)
        board.load()
        return validate_board(board)

    def _types(self, entries) -> list:
        return sorted(entry["type"] for entry in entries)

    def test_fully_covered_board_passes(self) -> None:
        self._add_rows(
            {"item_id": "T1", "parade_day": 0, "shift_type": "0-morning"},
            {"item_id": "T1", "parade_day": 3, "shift_type": "manual-P1", "manual_person_id": "P1"},
            {"item_id": "T2", "parade_day": 0, "shift_type": "manual-P1", "manual_person_id": "P1"},
            {"item_id": "T2", "parade_day": 3, "shift_type": "manual-P1", "manual_person_id": "P1"},
        )
        report = self._report()
        self.assertEqual(report["issues"], [])
        self.assertEqual(report["warnings"], [])
        self.assertEqual(report["week_start"], WEEK_START.isoformat())
        self.assertTrue(all(check["status"] == "ok" for check in report["checks"]))

    def test_empty_board_warns_for_every_cell(self) -> None:
        report = self._report()
        self.assertEqual(report["issues"], [])
        self.assertEqual(self._types(report["warnings"]), ["unassigned"] * 4)
        statuses = {check["label"]: check["status"] for check in report["checks"]}
        self.assertEqual(statuses["Every task covered on every parade day?"], "fail")
        self.assertEqual(statuses["Assignments only on parade days?"], "ok")

    def test_reports_broken_rows(self) -> None:
        self._add_rows(
            {"item_id": "T1", "parade_day": 5, "shift_type": "manual-P1", "manual_person_id": "P1"},
            {"item_id": "T9", "parade_day": 0, "shift_type": "manual-P1", "manual_person_id": "P1"},
            {"item_id": "T2", "parade_day": 0, "shift_type": "manual-ghost", "manual_person_id": "ghost"},
            {"item_id": "T2", "parade_day": 3, "shift_type": "tuesday-ish"},
            {"item_id": "T1", "parade_day": 0, "shift_type": "0-evening", "manual_person_id": "nobody"},
        )
        report = self._report()
        self.assertEqual(
            self._types(report["issues"]),
            ["inactive_day", "unknown_person", "unknown_person", "unknown_task", "unreadable"],
        )
        self.assertIn("empty_slot", self._types(report["warnings"]))
        unknown = [issue for issue in report["issues"] if issue["type"] == "unknown_person"]
        self.assertEqual(sorted(issue["person_id"] for issue in unknown), ["ghost", "nobody"])
        unreadable = next(issue for issue in report["issues"] if issue["type"] == "unreadable")
        self.assertIn("tuesday-ish", unreadable["message"])

    def test_check_details_are_truncated(self) -> None:
        with self.session_factory() as session:
            for index in range(8):
                session.add(ChecklistItem(id=f"X{index}", site=SITE, item_name=f"Extra {index}", item_order=10 + index))
            session.commit()
        report = self._report()
        coverage = next(check for check in report["checks"] if check["label"].startswith("Every task covered"))
        self.assertTrue(coverage["details"].endswith("more"))


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional

from database import normalize_week_start
from row_store import RowStore

ROSTER_TABLE = "work_schedule"
PEOPLE_TABLE = "people"
SATURDAY = 6


class ShiftSlot(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @property
    def column(self) -> str:
        return f"{self.value}_person_id"


class WeekOffset(str, Enum):
    CURRENT = "current"
    PREVIOUS = "previous"


SHIFT_LABELS: Dict[ShiftSlot, str] = {
    ShiftSlot.MORNING: "Morning",
    ShiftSlot.AFTERNOON: "Afternoon",
    ShiftSlot.EVENING: "Evening",
}


class RosterSlot(NamedTuple):
    day_of_week: int
    shift: ShiftSlot
    week: WeekOffset = WeekOffset.CURRENT

    @property
    def is_previous_week(self) -> bool:
        return self.week is WeekOffset.PREVIOUS


def previous_saturday(shift: ShiftSlot) -> RosterSlot:
    """Closing shifts of last week's Saturday, used by Sunday parades."""
    return RosterSlot(SATURDAY, shift, WeekOffset.PREVIOUS)


@dataclass(frozen=True)
class Person:
    id: str
    full_name: str
    personal_number: str = ""

    @property
    def first_name(self) -> str:
        parts = self.full_name.split()
        return parts[0] if parts else ""


class RosterSnapshot:
    """One week of the duty roster: day_of_week -> shift -> person id."""

    def __init__(self, week_start: Optional[datetime.date], days: Optional[Mapping[int, Mapping[ShiftSlot, Optional[str]]]] = None) -> None:
        self.week_start = week_start
        self._days: Dict[int, Dict[ShiftSlot, Optional[str]]] = {
            int(day): dict(shifts) for day, shifts in (days or {}).items()
        }

    @classmethod
    def from_rows(cls, week_start: Optional[datetime.date], rows: Iterable[Mapping]) -> "RosterSnapshot":
        days: Dict[int, Dict[ShiftSlot, Optional[str]]] = {}
        for row in rows:
            try:
                day = int(row["day_of_week"])
            except (KeyError, TypeError, ValueError):
                continue
            days[day] = {shift: row.get(shift.column) for shift in ShiftSlot}
        return cls(week_start, days)

    def person_id(self, day_of_week: int, shift: ShiftSlot) -> Optional[str]:
        entry = self._days.get(day_of_week)
        if entry is None:
            return None
        return entry.get(shift)


class DutyRoster:
    """Resolves roster slots to people over the current and previous week snapshots."""

    def __init__(
        self,
        current: Optional[RosterSnapshot] = None,
        previous: Optional[RosterSnapshot] = None,
        people: Iterable[Person] = (),
    ) -> None:
        self.current = current or RosterSnapshot(None)
        self.previous = previous or RosterSnapshot(None)
        self.people: Dict[str, Person] = {person.id: person for person in people}

    def snapshot(self, week: WeekOffset) -> RosterSnapshot:
        return self.previous if week is WeekOffset.PREVIOUS else self.current

    def person_id_for(self, slot: RosterSlot) -> Optional[str]:
        return self.snapshot(slot.week).person_id(slot.day_of_week, slot.shift)

    def person(self, person_id: Optional[str]) -> Optional[Person]:
        if not person_id:
            return None
        return self.people.get(person_id)

    def resolve_person(self, slot: RosterSlot) -> Optional[Person]:
        return self.person(self.person_id_for(slot))

    def list_people(self) -> List[Person]:
        return sorted(self.people.values(), key=lambda person: person.full_name)


def person_from_row(row: Mapping) -> Person:
    return Person(
        id=str(row["id"]),
        full_name=row.get("full_name") or "",
        personal_number=row.get("personal_number") or "",
    )


def load_roster(store: RowStore, site: str, week_start: datetime.date) -> DutyRoster:
    """Fetch the site's roster for the week of ``week_start`` and the week before it."""
    current_start = normalize_week_start(week_start)
    previous_start = current_start - datetime.timedelta(days=7)
    current_rows = store.query(ROSTER_TABLE, {"site": site, "week_start_date": current_start})
    previous_rows = store.query(ROSTER_TABLE, {"site": site, "week_start_date": previous_start})
    people = [person_from_row(row) for row in store.query(PEOPLE_TABLE, {"site": site})]
    return DutyRoster(
        RosterSnapshot.from_rows(current_start, current_rows),
        RosterSnapshot.from_rows(previous_start, previous_rows),
        people,
    )

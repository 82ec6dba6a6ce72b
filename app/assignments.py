"""Assignment model and the legacy ``shift_type`` codec.

Persisted rows overload one text column to carry the assignment variant:

* ``"manual-<personId>"``: pinned to a person, ``manual_person_id`` repeats the id;
* ``"<day>-<shift>"``: whoever works that roster slot this week;
* ``"prev-<day>-<shift>"``: the same, read from last week's roster
  (in practice only ``prev-6-*``, Saturday before a Sunday parade).

For roster-linked rows ``manual_person_id`` holds the optional additional
person. The codec below is the only place those strings are read or written.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, NamedTuple, Optional, Union

from database import DAY_LABELS
from roster import SATURDAY, SHIFT_LABELS, RosterSlot, ShiftSlot, WeekOffset
from row_store import RowStore

ASSIGNMENTS_TABLE = "cleaning_item_assignments"
MANUAL_PREFIX = "manual-"
PREVIOUS_PREFIX = "prev-"


class AssignmentKey(NamedTuple):
    task_id: str
    parade_day: int


@dataclass(frozen=True)
class RosterLinked:
    slot: Optional[RosterSlot]
    additional_person_id: Optional[str] = None
    deadline_time: Optional[datetime.time] = None

    kind = "roster"

    def is_complete(self) -> bool:
        return self.slot is not None


@dataclass(frozen=True)
class ManuallyPinned:
    person_id: Optional[str]
    deadline_time: Optional[datetime.time] = None

    kind = "manual"

    def is_complete(self) -> bool:
        return bool(self.person_id)


Payload = Union[RosterLinked, ManuallyPinned]


@dataclass(frozen=True)
class Assignment:
    key: AssignmentKey
    payload: Payload
    id: Optional[int] = None

    @property
    def task_id(self) -> str:
        return self.key.task_id

    @property
    def parade_day(self) -> int:
        return self.key.parade_day

    @property
    def deadline_time(self) -> Optional[datetime.time]:
        return self.payload.deadline_time


# ---------------------------------------------------------------------------
# Schedule option strings


def format_schedule_option(slot: RosterSlot) -> str:
    value = f"{slot.day_of_week}-{slot.shift.value}"
    if slot.week is WeekOffset.PREVIOUS:
        return f"{PREVIOUS_PREFIX}{value}"
    return value


def parse_schedule_option(value: Optional[str]) -> Optional[RosterSlot]:
    """Parse ``"2-morning"`` or ``"prev-6-evening"``; anything else is None."""
    text = (value or "").strip()
    week = WeekOffset.CURRENT
    if text.startswith(PREVIOUS_PREFIX):
        week = WeekOffset.PREVIOUS
        text = text[len(PREVIOUS_PREFIX):]
    day_part, sep, shift_part = text.partition("-")
    if not sep:
        return None
    try:
        day = int(day_part)
        shift = ShiftSlot(shift_part)
    except ValueError:
        return None
    if day < 0 or day > 6:
        return None
    return RosterSlot(day, shift, week)


def schedule_options() -> List[Dict[str, Any]]:
    """Selectable roster slots: last week's Saturday first, then every day of this week."""
    options: List[Dict[str, Any]] = []
    for shift in ShiftSlot:
        slot = RosterSlot(SATURDAY, shift, WeekOffset.PREVIOUS)
        options.append(
            {
                "value": format_schedule_option(slot),
                "day_label": f"{DAY_LABELS[SATURDAY]} (previous week)",
                "shift_label": SHIFT_LABELS[shift],
                "slot": slot,
            }
        )
    for day, day_label in enumerate(DAY_LABELS):
        for shift in ShiftSlot:
            slot = RosterSlot(day, shift, WeekOffset.CURRENT)
            options.append(
                {
                    "value": format_schedule_option(slot),
                    "day_label": day_label,
                    "shift_label": SHIFT_LABELS[shift],
                    "slot": slot,
                }
            )
    return options


# ---------------------------------------------------------------------------
# Row codec


def _parse_time(value: Any) -> Optional[datetime.time]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value.time().replace(microsecond=0)
    if isinstance(value, datetime.time):
        return value.replace(microsecond=0)
    try:
        return datetime.time.fromisoformat(str(value)).replace(microsecond=0)
    except ValueError:
        return None


def decode_payload(
    shift_type: Optional[str],
    manual_person_id: Optional[str] = None,
    deadline_time: Any = None,
) -> Optional[Payload]:
    text = (shift_type or "").strip()
    deadline = _parse_time(deadline_time)
    if not text:
        return None
    if text.startswith(MANUAL_PREFIX):
        person_id = text[len(MANUAL_PREFIX):] or manual_person_id
        if not person_id:
            return None
        return ManuallyPinned(person_id=person_id, deadline_time=deadline)
    slot = parse_schedule_option(text)
    if slot is None:
        return None
    return RosterLinked(slot=slot, additional_person_id=manual_person_id or None, deadline_time=deadline)


def encode_payload(payload: Payload) -> Dict[str, Any]:
    """Return the legacy column values for a complete payload."""
    if not payload.is_complete():
        raise ValueError("Cannot store an incomplete assignment.")
    if isinstance(payload, ManuallyPinned):
        return {
            "shift_type": f"{MANUAL_PREFIX}{payload.person_id}",
            "manual_person_id": payload.person_id,
            "deadline_time": payload.deadline_time,
        }
    return {
        "shift_type": format_schedule_option(payload.slot),
        "manual_person_id": payload.additional_person_id,
        "deadline_time": payload.deadline_time,
    }


def row_key(row: Mapping[str, Any]) -> Optional[AssignmentKey]:
    try:
        return AssignmentKey(str(row["item_id"]), int(row["parade_day"]))
    except (KeyError, TypeError, ValueError):
        return None


def decode_row(row: Mapping[str, Any]) -> Optional[Assignment]:
    key = row_key(row)
    if key is None:
        return None
    payload = decode_payload(row.get("shift_type"), row.get("manual_person_id"), row.get("deadline_time"))
    if payload is None:
        return None
    return Assignment(key=key, payload=payload, id=row.get("id"))


# ---------------------------------------------------------------------------
# Store snapshot


class AssignmentStore:
    """Last loaded snapshot of a site's persisted assignments.

    Rows whose ``shift_type`` cannot be decoded keep their identity (so an edit
    on that cell updates or deletes the row instead of colliding with it) but
    have no assignment to display.
    """

    def __init__(self, assignments: Iterable[Assignment] = (), unparsed_rows: Iterable[Mapping[str, Any]] = ()) -> None:
        self._assignments: Dict[AssignmentKey, Assignment] = {}
        for assignment in assignments:
            self._assignments[assignment.key] = assignment
        self._unparsed: Dict[AssignmentKey, Dict[str, Any]] = {}
        for row in unparsed_rows:
            key = row_key(row)
            if key is not None and key not in self._assignments:
                self._unparsed[key] = dict(row)

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping[str, Any]]) -> "AssignmentStore":
        decoded: List[Assignment] = []
        unparsed: List[Mapping[str, Any]] = []
        for row in rows:
            assignment = decode_row(row)
            if assignment is None:
                unparsed.append(row)
            else:
                decoded.append(assignment)
        return cls(decoded, unparsed)

    def get(self, key: AssignmentKey) -> Optional[Assignment]:
        return self._assignments.get(key)

    def row_id(self, key: AssignmentKey) -> Optional[int]:
        assignment = self._assignments.get(key)
        if assignment is not None:
            return assignment.id
        row = self._unparsed.get(key)
        return row.get("id") if row else None

    def unparsed_rows(self) -> List[Dict[str, Any]]:
        return list(self._unparsed.values())

    def keys(self) -> List[AssignmentKey]:
        return list(self._assignments)

    def __contains__(self, key: object) -> bool:
        return key in self._assignments

    def __iter__(self) -> Iterator[Assignment]:
        return iter(list(self._assignments.values()))

    def __len__(self) -> int:
        return len(self._assignments)


def load_assignments(store: RowStore, site: str) -> AssignmentStore:
    return AssignmentStore.from_rows(store.query(ASSIGNMENTS_TABLE, {"site": site}))

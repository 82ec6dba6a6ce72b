from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional

from assignments import Assignment, AssignmentKey, AssignmentStore, ManuallyPinned, RosterLinked
from database import DAY_SHORT_LABELS
from overlay import CLEAR, PendingEdits
from roster import SHIFT_LABELS, DutyRoster, Person, ShiftSlot

KIND_NONE = "none"
KIND_ROSTER = "roster"
KIND_MANUAL = "manual"

STATE_UNSET = "unset"
STATE_SAVED = "saved"
STATE_PENDING_REPLACE = "pending-replace"
STATE_PENDING_CLEAR = "pending-clear"

BADGE_COLORS: Dict[str, str] = {
    ShiftSlot.MORNING.value: "#f59e0b",
    ShiftSlot.AFTERNOON.value: "#ea580c",
    ShiftSlot.EVENING.value: "#059669",
    KIND_MANUAL: "#2563eb",
    KIND_NONE: "#94a3b8",
}
PENDING_COLOR = "#fef3c7"


@dataclass(frozen=True)
class DisplayInfo:
    kind: str
    label: str
    person: Optional[Person] = None
    additional_person: Optional[Person] = None
    deadline_label: Optional[str] = None
    badge: str = BADGE_COLORS[KIND_NONE]

    @property
    def is_assigned(self) -> bool:
        return self.kind != KIND_NONE


NO_ASSIGNMENT = DisplayInfo(kind=KIND_NONE, label="Unassigned")


def effective_assignment(key: AssignmentKey, store: AssignmentStore, edits: PendingEdits) -> Optional[Assignment]:
    """Return the assignment a cell shows: overlay over store."""
    if edits.is_pending(key):
        pending = edits.get(key)
        if pending is CLEAR:
            return None
        stored = store.get(key)
        if stored is not None:
            return replace(stored, payload=pending)
        return Assignment(key=key, payload=pending, id=store.row_id(key))
    return store.get(key)


def cell_state(key: AssignmentKey, store: AssignmentStore, edits: PendingEdits) -> str:
    if edits.is_pending(key):
        return STATE_PENDING_CLEAR if edits.get(key) is CLEAR else STATE_PENDING_REPLACE
    return STATE_SAVED if key in store else STATE_UNSET


def describe(assignment: Optional[Assignment], roster: DutyRoster) -> DisplayInfo:
    if assignment is None or assignment.payload is None:
        return NO_ASSIGNMENT
    payload = assignment.payload
    deadline = payload.deadline_time.strftime("%H:%M") if payload.deadline_time else None
    if isinstance(payload, ManuallyPinned):
        return DisplayInfo(
            kind=KIND_MANUAL,
            label="Manual",
            person=roster.person(payload.person_id),
            deadline_label=deadline,
            badge=BADGE_COLORS[KIND_MANUAL],
        )
    if isinstance(payload, RosterLinked) and payload.slot is not None:
        slot = payload.slot
        label = f"{DAY_SHORT_LABELS[slot.day_of_week]} {SHIFT_LABELS[slot.shift]}"
        if slot.is_previous_week:
            label = f"{label} (prev)"
        return DisplayInfo(
            kind=KIND_ROSTER,
            label=label,
            person=roster.resolve_person(slot),
            additional_person=roster.person(payload.additional_person_id),
            deadline_label=deadline,
            badge=BADGE_COLORS[slot.shift.value],
        )
    return NO_ASSIGNMENT

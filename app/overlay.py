from __future__ import annotations

import datetime
from typing import Dict, Iterator, Optional, Tuple, Union

from assignments import AssignmentKey, ManuallyPinned, Payload, RosterLinked, parse_schedule_option


class _Clear:
    """Tombstone: remove the stored assignment on save."""

    def __repr__(self) -> str:
        return "CLEAR"


CLEAR = _Clear()
PendingEdit = Union[_Clear, RosterLinked, ManuallyPinned]

MODE_SCHEDULE = "schedule"
MODE_MANUAL = "manual"


class PendingEdits:
    """Uncommitted board edits keyed by (task, parade day)."""

    def __init__(self) -> None:
        self._edits: Dict[AssignmentKey, PendingEdit] = {}

    def set_replace(self, key: AssignmentKey, payload: Payload) -> bool:
        """Record a create/update. Incomplete payloads are recorded as a clear instead.

        Returns True when the payload was accepted as a replacement.
        """
        key = _check_key(key)
        if payload is None or not payload.is_complete():
            self._edits[key] = CLEAR
            return False
        self._edits[key] = payload
        return True

    def set_clear(self, key: AssignmentKey) -> None:
        self._edits[_check_key(key)] = CLEAR

    def discard(self, key: AssignmentKey) -> None:
        self._edits.pop(key, None)

    def discard_all(self) -> None:
        self._edits.clear()

    def has_changes(self) -> bool:
        return bool(self._edits)

    def is_pending(self, key: AssignmentKey) -> bool:
        return key in self._edits

    def get(self, key: AssignmentKey) -> Optional[PendingEdit]:
        return self._edits.get(key)

    def items(self) -> Iterator[Tuple[AssignmentKey, PendingEdit]]:
        return iter(list(self._edits.items()))

    def __len__(self) -> int:
        return len(self._edits)

    def __contains__(self, key: object) -> bool:
        return key in self._edits


def _check_key(key: AssignmentKey) -> AssignmentKey:
    task_id, parade_day = key
    if not task_id or parade_day is None:
        raise ValueError("Both task_id and parade_day are required.")
    return AssignmentKey(str(task_id), int(parade_day))


def payload_from_form(
    mode: str,
    *,
    schedule_option: Optional[str] = None,
    manual_person_id: Optional[str] = None,
    additional_person_id: Optional[str] = None,
    deadline_time: Optional[datetime.time] = None,
) -> Optional[Payload]:
    """Build a payload from assignment dialog values, or None when the form is incomplete."""
    if mode == MODE_SCHEDULE:
        slot = parse_schedule_option(schedule_option)
        if slot is None:
            return None
        return RosterLinked(slot=slot, additional_person_id=additional_person_id or None, deadline_time=deadline_time)
    if mode == MODE_MANUAL:
        if not manual_person_id:
            return None
        return ManuallyPinned(person_id=manual_person_id, deadline_time=deadline_time)
    return None


def record_form_edit(edits: PendingEdits, key: AssignmentKey, payload: Optional[Payload]) -> bool:
    if payload is None:
        edits.set_clear(key)
        return False
    return edits.set_replace(key, payload)

from __future__ import annotations

from typing import Any, Dict, List

from assignments import AssignmentKey, ManuallyPinned, RosterLinked, format_schedule_option
from board import ParadeBoard
from database import DAY_LABELS


def validate_board(board: ParadeBoard) -> Dict[str, Any]:
    """Return validation findings for the stored assignments of a loaded board."""
    issues: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []
    issues.extend(_inactive_day_issues(board))
    issues.extend(_unknown_task_issues(board))
    issues.extend(_unknown_person_issues(board))
    issues.extend(_unreadable_row_issues(board))
    warnings.extend(_empty_slot_warnings(board))
    warnings.extend(_unassigned_cell_warnings(board))
    return {
        "site": board.site,
        "week_start": board.week_start.isoformat(),
        "checks": _build_checklist(issues, warnings),
        "issues": issues,
        "warnings": warnings,
    }


def _day_label(day: int) -> str:
    if 0 <= day < len(DAY_LABELS):
        return DAY_LABELS[day]
    return str(day)


def _task_names(board: ParadeBoard) -> Dict[str, str]:
    return {str(task["id"]): task.get("item_name") or "" for task in board.tasks}


def _inactive_day_issues(board: ParadeBoard) -> List[Dict[str, Any]]:
    issues: List[Dict[str, Any]] = []
    active = set(board.parade_days)
    names = _task_names(board)
    for assignment in board.store:
        if assignment.parade_day in active:
            continue
        issues.append(
            {
                "type": "inactive_day",
                "severity": "error",
                "task_id": assignment.task_id,
                "day": _day_label(assignment.parade_day),
                "message": f"{names.get(assignment.task_id, assignment.task_id)} is assigned on "
                f"{_day_label(assignment.parade_day)}, which is not a parade day.",
            }
        )
    return issues


def _unknown_task_issues(board: ParadeBoard) -> List[Dict[str, Any]]:
    names = _task_names(board)
    issues: List[Dict[str, Any]] = []
    for assignment in board.store:
        if assignment.task_id in names:
            continue
        issues.append(
            {
                "type": "unknown_task",
                "severity": "error",
                "task_id": assignment.task_id,
                "day": _day_label(assignment.parade_day),
                "message": f"Assignment on {_day_label(assignment.parade_day)} points at a missing task.",
            }
        )
    return issues


def _unknown_person_issues(board: ParadeBoard) -> List[Dict[str, Any]]:
    issues: List[Dict[str, Any]] = []
    names = _task_names(board)
    for assignment in board.store:
        payload = assignment.payload
        if isinstance(payload, ManuallyPinned):
            person_ids = [("manual", payload.person_id)]
        else:
            person_ids = [("additional", payload.additional_person_id)] if payload.additional_person_id else []
        for role, person_id in person_ids:
            if board.roster.person(person_id) is not None:
                continue
            issues.append(
                {
                    "type": "unknown_person",
                    "severity": "error",
                    "task_id": assignment.task_id,
                    "person_id": person_id,
                    "day": _day_label(assignment.parade_day),
                    "message": f"{names.get(assignment.task_id, assignment.task_id)} on "
                    f"{_day_label(assignment.parade_day)} references an unknown {role} person.",
                }
            )
    return issues


def _unreadable_row_issues(board: ParadeBoard) -> List[Dict[str, Any]]:
    return [
        {
            "type": "unreadable",
            "severity": "error",
            "task_id": str(row.get("item_id")),
            "row_id": row.get("id"),
            "message": f"Assignment row {row.get('id')} has an unrecognised shift value '{row.get('shift_type')}'.",
        }
        for row in board.store.unparsed_rows()
    ]


def _empty_slot_warnings(board: ParadeBoard) -> List[Dict[str, Any]]:
    warnings: List[Dict[str, Any]] = []
    names = _task_names(board)
    for assignment in board.store:
        payload = assignment.payload
        if not isinstance(payload, RosterLinked):
            continue
        if board.roster.resolve_person(payload.slot) is not None:
            continue
        warnings.append(
            {
                "type": "empty_slot",
                "severity": "warning",
                "task_id": assignment.task_id,
                "slot": format_schedule_option(payload.slot),
                "day": _day_label(assignment.parade_day),
                "message": f"Nobody is on duty for the shift linked to "
                f"{names.get(assignment.task_id, assignment.task_id)} on {_day_label(assignment.parade_day)}.",
            }
        )
    return warnings


def _unassigned_cell_warnings(board: ParadeBoard) -> List[Dict[str, Any]]:
    warnings: List[Dict[str, Any]] = []
    for task in board.tasks:
        task_id = str(task["id"])
        for day in board.parade_days:
            if board.store.get(AssignmentKey(task_id, day)) is not None:
                continue
            warnings.append(
                {
                    "type": "unassigned",
                    "severity": "warning",
                    "task_id": task_id,
                    "day": _day_label(day),
                    "message": f"{task.get('item_name') or task_id} has nobody assigned on {_day_label(day)}.",
                }
            )
    return warnings


def _build_checklist(issues: List[Dict[str, Any]], warnings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    checks: List[Dict[str, Any]] = []

    def summarize(items: List[Dict[str, Any]], *, limit: int = 5) -> str:
        parts = [str(entry.get("message") or "").strip() for entry in items[:limit]]
        parts = [part for part in parts if part]
        if len(items) > limit:
            parts.append(f"+{len(items) - limit} more")
        return "; ".join(parts)

    def add_check(label: str, findings: List[Dict[str, Any]]) -> None:
        checks.append(
            {
                "label": label,
                "status": "ok" if not findings else "fail",
                "details": summarize(findings) if findings else "",
            }
        )

    def of_type(items: List[Dict[str, Any]], *types: str) -> List[Dict[str, Any]]:
        return [item for item in items if item.get("type") in types]

    add_check("Assignments only on parade days?", of_type(issues, "inactive_day"))
    add_check("Assignments point at existing tasks and people?", of_type(issues, "unknown_task", "unknown_person", "unreadable"))
    add_check("Every linked shift has someone on duty?", of_type(warnings, "empty_slot"))
    add_check("Every task covered on every parade day?", of_type(warnings, "unassigned"))
    return checks

"""FastAPI wrapper over the cleaning-parade board.

Each request opens its own board session: load the site's snapshot, apply the
caller's edits, save, and answer with the reloaded state. Storage failures
while loading surface as 503; failures while saving come back in the body.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import datetime
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# Ensure legacy absolute imports (e.g., "import database") still resolve.
APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from assignments import Assignment, ManuallyPinned, format_schedule_option, parse_schedule_option  # noqa: E402
from board import ParadeBoard  # noqa: E402
from database import DAY_LABELS, format_week_label, init_database  # noqa: E402
from overlay import MODE_MANUAL, MODE_SCHEDULE  # noqa: E402
from projector import DisplayInfo  # noqa: E402
from roles import can_delete, can_edit, is_known_role  # noqa: E402
from roster import Person  # noqa: E402
from row_store import RowStore, StorageError  # noqa: E402
from validation import validate_board  # noqa: E402

ACTION_REPLACE = "replace"
ACTION_CLEAR = "clear"


@asynccontextmanager
async def lifespan(_: FastAPI):
    init_database()
    yield


app = FastAPI(title="Cleaning Parade API", version="0.1", lifespan=lifespan)


def get_row_store() -> RowStore:
    return RowStore()


def _parse_date(value: Optional[str], field: str) -> Optional[datetime.date]:
    if not value:
        return None
    try:
        return datetime.date.fromisoformat(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{field} must be YYYY-MM-DD")


def _parse_time(value: Any) -> Optional[datetime.time]:
    if value in (None, ""):
        return None
    try:
        return datetime.time.fromisoformat(str(value))
    except ValueError:
        raise HTTPException(status_code=400, detail="deadline_time must be HH:MM")


def _require_editor(role: Any) -> None:
    if not isinstance(role, str) or not is_known_role(role):
        raise HTTPException(status_code=403, detail=f"Unknown role '{role}'")
    if not can_edit(role):
        raise HTTPException(status_code=403, detail=f"Role '{role}' cannot edit the cleaning board")


def _require_deleter(role: Any) -> None:
    _require_editor(role)
    if not can_delete(role):
        raise HTTPException(status_code=403, detail=f"Role '{role}' cannot delete checklist tasks")


def _text(body: Dict[str, Any], field: str, default: str) -> str:
    value = body.get(field)
    if value is None:
        return default
    if not isinstance(value, str):
        raise HTTPException(status_code=400, detail=f"{field} must be a string")
    return value.strip() or default


def _actor(payload: Dict[str, Any]) -> str:
    return _text(payload, "actor", "api")


def _open_board(
    site: str,
    row_store: RowStore,
    *,
    week_start: Optional[datetime.date] = None,
    actor: str = "api",
) -> ParadeBoard:
    board = ParadeBoard(site, row_store=row_store, week_start=week_start, actor=actor)
    try:
        board.load()
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"could not load board: {exc}") from exc
    return board


def _serialize_person(person: Optional[Person]) -> Optional[Dict[str, Any]]:
    if person is None:
        return None
    return {"id": person.id, "full_name": person.full_name, "first_name": person.first_name}


def _serialize_assignment(assignment: Optional[Assignment]) -> Optional[Dict[str, Any]]:
    if assignment is None:
        return None
    payload = assignment.payload
    data: Dict[str, Any] = {
        "id": assignment.id,
        "mode": MODE_MANUAL if isinstance(payload, ManuallyPinned) else MODE_SCHEDULE,
        "deadline_time": payload.deadline_time.strftime("%H:%M") if payload.deadline_time else None,
    }
    if isinstance(payload, ManuallyPinned):
        data["manual_person_id"] = payload.person_id
    else:
        data["schedule_option"] = format_schedule_option(payload.slot) if payload.slot else None
        data["additional_person_id"] = payload.additional_person_id
    return data


def _serialize_display(display: DisplayInfo) -> Dict[str, Any]:
    return {
        "kind": display.kind,
        "label": display.label,
        "person": _serialize_person(display.person),
        "additional_person": _serialize_person(display.additional_person),
        "deadline": display.deadline_label,
        "badge": display.badge,
    }


def _serialize_board(board: ParadeBoard) -> Dict[str, Any]:
    rows = []
    for row in board.grid():
        task = row["task"]
        rows.append(
            {
                "task": {"id": str(task["id"]), "name": task.get("item_name") or "", "order": task.get("item_order") or 0},
                "cells": [
                    {
                        "parade_day": cell["parade_day"],
                        "state": cell["state"],
                        "assignment": _serialize_assignment(cell["assignment"]),
                        "display": _serialize_display(cell["display"]),
                    }
                    for cell in row["cells"]
                ],
            }
        )
    return {
        "site": board.site,
        "week_start": board.week_start.isoformat(),
        "week_label": format_week_label(board.week_start),
        "parade_days": [{"day": day, "label": DAY_LABELS[day]} for day in board.parade_days],
        "rows": rows,
    }


def _apply_edit(board: ParadeBoard, edit: Any) -> None:
    if not isinstance(edit, dict):
        raise HTTPException(status_code=400, detail="each edit must be an object")
    task_id = edit.get("task_id")
    parade_day = edit.get("parade_day")
    if not task_id or parade_day is None:
        raise HTTPException(status_code=400, detail="task_id and parade_day are required")
    try:
        parade_day = int(parade_day)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="parade_day must be an integer") from exc
    action = _text(edit, "action", ACTION_REPLACE).lower()
    try:
        if action == ACTION_CLEAR:
            board.set_clear(str(task_id), parade_day)
            return
        if action != ACTION_REPLACE:
            raise HTTPException(status_code=400, detail=f"Unsupported action '{action}'")
        mode = _text(edit, "mode", MODE_SCHEDULE).lower()
        if mode not in (MODE_SCHEDULE, MODE_MANUAL):
            raise HTTPException(status_code=400, detail=f"Unsupported mode '{mode}'")
        option = edit.get("schedule_option")
        if option is not None and not isinstance(option, str):
            raise HTTPException(status_code=400, detail="schedule_option must be a string")
        if mode == MODE_SCHEDULE and option and parse_schedule_option(option) is None:
            raise HTTPException(status_code=400, detail=f"Unknown schedule option '{option}'")
        board.apply_form(
            str(task_id),
            parade_day,
            mode,
            schedule_option=option,
            manual_person_id=edit.get("manual_person_id"),
            additional_person_id=edit.get("additional_person_id"),
            deadline_time=_parse_time(edit.get("deadline_time")),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/api/v1/sites/{site}/board")
def get_board(
    site: str,
    week_start: Optional[str] = Query(None),
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    board = _open_board(site, row_store, week_start=_parse_date(week_start, "week_start"))
    return JSONResponse(content=jsonable_encoder(_serialize_board(board)))


@app.post("/api/v1/sites/{site}/assignments")
def save_assignments(
    site: str,
    payload: Dict[str, Any],
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    _require_editor(payload.get("role"))
    actor = _actor(payload)
    edits = payload.get("edits") or []
    if not isinstance(edits, list):
        raise HTTPException(status_code=400, detail="edits must be a list")
    board = _open_board(
        site,
        row_store,
        week_start=_parse_date(payload.get("week_start"), "week_start"),
        actor=actor,
    )
    for edit in edits:
        _apply_edit(board, edit)
    result = board.save()
    body = result.as_dict()
    body["board"] = _serialize_board(board)
    return JSONResponse(content=jsonable_encoder(body))


@app.put("/api/v1/sites/{site}/parade-days")
def save_parade_days(
    site: str,
    payload: Dict[str, Any],
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    _require_editor(payload.get("role"))
    actor = _actor(payload)
    days = payload.get("days")
    if not isinstance(days, list):
        raise HTTPException(status_code=400, detail="days must be a list of day numbers")
    board = ParadeBoard(site, row_store=row_store, actor=actor)
    try:
        saved = board.save_parade_days(int(day) for day in days)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"could not save parade days: {exc}") from exc
    return JSONResponse(content=jsonable_encoder({"site": site, "days": saved}))


def _require_task(board: ParadeBoard, task_id: str) -> None:
    if not any(str(task["id"]) == task_id for task in board.tasks):
        raise HTTPException(status_code=404, detail=f"Task {task_id} is not on the {board.site} board")


def _save_task(site: str, payload: Dict[str, Any], row_store: RowStore, task_id: Optional[str] = None) -> JSONResponse:
    _require_editor(payload.get("role"))
    name = _text(payload, "name", "")
    board = _open_board(site, row_store, actor=_actor(payload))
    if task_id is not None:
        _require_task(board, task_id)
    try:
        task = board.save_task(name, task_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"could not save task: {exc}") from exc
    return JSONResponse(
        content=jsonable_encoder({"id": str(task["id"]), "name": task["item_name"], "order": task["item_order"]})
    )


@app.post("/api/v1/sites/{site}/tasks")
def create_task(
    site: str,
    payload: Dict[str, Any],
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    return _save_task(site, payload, row_store)


@app.put("/api/v1/sites/{site}/tasks/{task_id}")
def rename_task(
    site: str,
    task_id: str,
    payload: Dict[str, Any],
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    return _save_task(site, payload, row_store, task_id)


@app.delete("/api/v1/sites/{site}/tasks/{task_id}")
def delete_task(
    site: str,
    task_id: str,
    role: Optional[str] = Query(None),
    actor: Optional[str] = Query(None),
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    _require_deleter(role)
    board = _open_board(site, row_store, actor=(actor or "").strip() or "api")
    _require_task(board, task_id)
    try:
        board.remove_task(task_id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=f"could not delete task: {exc}") from exc
    return JSONResponse(content=jsonable_encoder({"site": site, "deleted": task_id}))


@app.get("/api/v1/sites/{site}/people/{person_id}/tasks")
def person_tasks(
    site: str,
    person_id: str,
    today: Optional[str] = Query(None),
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    today_date = _parse_date(today, "today") or datetime.date.today()
    board = _open_board(site, row_store, week_start=today_date)
    person = board.roster.person(person_id)
    tasks = board.tasks_for_person(person_id, today=today_date)
    return JSONResponse(
        content=jsonable_encoder(
            {
                "site": site,
                "week_start": board.week_start.isoformat(),
                "person": _serialize_person(person),
                "tasks": [task.as_dict() for task in tasks],
            }
        )
    )


@app.get("/api/v1/sites/{site}/validate")
def validate_site(
    site: str,
    week_start: Optional[str] = Query(None),
    row_store: RowStore = Depends(get_row_store),
) -> JSONResponse:
    board = _open_board(site, row_store, week_start=_parse_date(week_start, "week_start"))
    return JSONResponse(content=jsonable_encoder(validate_board(board)))

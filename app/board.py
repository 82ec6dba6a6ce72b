from __future__ import annotations

import datetime
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from assignments import (
    ASSIGNMENTS_TABLE,
    Assignment,
    AssignmentKey,
    AssignmentStore,
    ManuallyPinned,
    Payload,
    load_assignments,
)
from database import normalize_week_start, record_audit_log
from overlay import PendingEdits, payload_from_form, record_form_edit
from projector import DisplayInfo, cell_state, describe, effective_assignment
from roster import DutyRoster, load_roster
from row_store import RowStore, StorageError
from sync import Changeset, SyncResult, apply_changeset, compile_changeset, reload_failure

logger = logging.getLogger(__name__)

PARADE_CONFIG_TABLE = "cleaning_parade_config"
CHECKLIST_TABLE = "cleaning_checklist_items"
LOAD_WORKERS = 4


@dataclass(frozen=True)
class BoardTask:
    task_id: str
    task_name: str
    parade_day: int
    date: datetime.date
    deadline_time: Optional[datetime.time]
    is_manual: bool
    is_today: bool
    is_past: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "task_name": self.task_name,
            "parade_day": self.parade_day,
            "date": self.date.isoformat(),
            "deadline_time": self.deadline_time.strftime("%H:%M") if self.deadline_time else None,
            "is_manual": self.is_manual,
            "is_today": self.is_today,
            "is_past": self.is_past,
        }


class ParadeBoard:
    """One editor's session on a site's cleaning-parade assignment board."""

    def __init__(
        self,
        site: str,
        *,
        row_store: Optional[RowStore] = None,
        week_start: Optional[datetime.date] = None,
        actor: str = "system",
    ) -> None:
        if not site:
            raise ValueError("site is required.")
        self.site = site
        self.row_store = row_store or RowStore()
        self.week_start = normalize_week_start(week_start or datetime.date.today())
        self.actor = actor or "system"
        self.roster = DutyRoster()
        self.store = AssignmentStore()
        self.edits = PendingEdits()
        self.parade_days: List[int] = []
        self.tasks: List[Dict[str, Any]] = []

    # ------------------------------------------------------------------
    # Loading

    def load(self) -> None:
        """Fetch roster, assignments, parade days and tasks concurrently, dropping pending edits."""
        with ThreadPoolExecutor(max_workers=LOAD_WORKERS) as pool:
            roster_future = pool.submit(load_roster, self.row_store, self.site, self.week_start)
            store_future = pool.submit(load_assignments, self.row_store, self.site)
            days_future = pool.submit(self._fetch_parade_days)
            tasks_future = pool.submit(self._fetch_tasks)
            roster = roster_future.result()
            store = store_future.result()
            parade_days = days_future.result()
            tasks = tasks_future.result()
        self.roster = roster
        self.store = store
        self.parade_days = parade_days
        self.tasks = tasks
        self.edits.discard_all()
        logger.debug(
            "Loaded board for %s: %d tasks, %d parade days, %d assignments",
            self.site,
            len(self.tasks),
            len(self.parade_days),
            len(self.store),
        )

    def reload_assignments(self) -> None:
        self.store = load_assignments(self.row_store, self.site)
        self.edits.discard_all()

    def _fetch_parade_days(self) -> List[int]:
        rows = self.row_store.query(PARADE_CONFIG_TABLE, {"site": self.site, "is_active": True})
        return sorted({int(row["day_of_week"]) for row in rows})

    def _fetch_tasks(self) -> List[Dict[str, Any]]:
        rows = self.row_store.query(CHECKLIST_TABLE, {"site": self.site, "is_active": True})
        return sorted(rows, key=lambda row: (row.get("item_order") or 0, row.get("item_name") or ""))

    # ------------------------------------------------------------------
    # Editing

    def key(self, task_id: str, parade_day: int) -> AssignmentKey:
        if parade_day not in self.parade_days:
            raise ValueError(f"Day {parade_day} is not an active parade day for {self.site}.")
        return AssignmentKey(str(task_id), int(parade_day))

    def set_replace(self, task_id: str, parade_day: int, payload: Payload) -> bool:
        return self.edits.set_replace(self.key(task_id, parade_day), payload)

    def set_clear(self, task_id: str, parade_day: int) -> None:
        self.edits.set_clear(self.key(task_id, parade_day))

    def apply_form(
        self,
        task_id: str,
        parade_day: int,
        mode: str,
        *,
        schedule_option: Optional[str] = None,
        manual_person_id: Optional[str] = None,
        additional_person_id: Optional[str] = None,
        deadline_time: Optional[datetime.time] = None,
    ) -> bool:
        payload = payload_from_form(
            mode,
            schedule_option=schedule_option,
            manual_person_id=manual_person_id,
            additional_person_id=additional_person_id,
            deadline_time=deadline_time,
        )
        return record_form_edit(self.edits, self.key(task_id, parade_day), payload)

    def discard(self, task_id: str, parade_day: int) -> None:
        self.edits.discard(AssignmentKey(str(task_id), int(parade_day)))

    def discard_all(self) -> None:
        self.edits.discard_all()

    def has_changes(self) -> bool:
        return self.edits.has_changes()

    # ------------------------------------------------------------------
    # Projection

    def effective(self, task_id: str, parade_day: int) -> Optional[Assignment]:
        return effective_assignment(AssignmentKey(str(task_id), int(parade_day)), self.store, self.edits)

    def describe_cell(self, task_id: str, parade_day: int) -> DisplayInfo:
        return describe(self.effective(task_id, parade_day), self.roster)

    def cell_state(self, task_id: str, parade_day: int) -> str:
        return cell_state(AssignmentKey(str(task_id), int(parade_day)), self.store, self.edits)

    def grid(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        for task in self.tasks:
            cells = []
            for day in self.parade_days:
                assignment = self.effective(task["id"], day)
                cells.append(
                    {
                        "parade_day": day,
                        "state": self.cell_state(task["id"], day),
                        "assignment": assignment,
                        "display": describe(assignment, self.roster),
                    }
                )
            rows.append({"task": task, "cells": cells})
        return rows

    # ------------------------------------------------------------------
    # Saving

    def compile(self) -> Changeset:
        return compile_changeset(self.edits, self.store)

    def save(self) -> SyncResult:
        """Push pending edits, then reload the stored snapshot whatever the outcome."""
        if not self.edits.has_changes():
            return SyncResult()
        changeset = self.compile()
        result = apply_changeset(self.row_store, self.site, changeset)
        self._audit(
            "ASSIGNMENTS_SAVE",
            {
                "deleted": result.deleted,
                "updated": result.updated,
                "inserted": result.inserted,
                "failures": [failure.as_dict() for failure in result.failures],
            },
        )
        try:
            self.reload_assignments()
        except StorageError as exc:
            result.failures.append(reload_failure(exc))
        return result

    def save_parade_days(self, days: Iterable[int]) -> List[int]:
        selected = sorted({int(day) for day in days})
        for day in selected:
            if day < 0 or day > 6:
                raise ValueError(f"Unsupported parade day {day}.")
        try:
            self.row_store.delete_where(PARADE_CONFIG_TABLE, {"site": self.site})
            if selected:
                self.row_store.insert(
                    PARADE_CONFIG_TABLE,
                    [{"site": self.site, "day_of_week": day, "is_active": True} for day in selected],
                )
            self._audit("PARADE_DAYS_SAVE", {"days": selected}, target_type="ParadeConfig")
        finally:
            self.parade_days = self._fetch_parade_days()
        return list(self.parade_days)

    def save_task(self, name: str, task_id: Optional[str] = None) -> Dict[str, Any]:
        """Add a checklist task at the end of the list, or rename an existing one."""
        clean_name = (name or "").strip()
        if not clean_name:
            raise ValueError("Task name is required.")
        if task_id is not None:
            task_id = str(task_id)
            if not any(str(task["id"]) == task_id for task in self.tasks):
                raise ValueError(f"Task {task_id} is not on the {self.site} board.")
        try:
            if task_id is None:
                order = len(self.row_store.query(CHECKLIST_TABLE, {"site": self.site}))
                saved = self.row_store.insert(
                    CHECKLIST_TABLE,
                    [{"site": self.site, "item_name": clean_name, "item_order": order, "is_active": True}],
                )
                task_id = str(saved[0]["id"])
                action = "TASK_CREATE"
            else:
                self.row_store.update(CHECKLIST_TABLE, task_id, {"item_name": clean_name})
                action = "TASK_RENAME"
            self._audit(action, {"task_id": task_id, "item_name": clean_name}, target_type="ChecklistItem")
        finally:
            self.tasks = self._fetch_tasks()
        for task in self.tasks:
            if str(task["id"]) == task_id:
                return task
        raise StorageError("query", CHECKLIST_TABLE, f"saved task {task_id} was not read back")

    def remove_task(self, task_id: str) -> None:
        """Delete a checklist task and every assignment that points at it."""
        try:
            self.row_store.delete_by_ids(CHECKLIST_TABLE, [task_id])
            self.row_store.delete_where(ASSIGNMENTS_TABLE, {"site": self.site, "item_id": task_id})
            self._audit("TASK_DELETE", {"task_id": task_id}, target_type="ChecklistItem")
        finally:
            self.tasks = self._fetch_tasks()
            self.reload_assignments()

    def _audit(self, action: str, payload: Dict[str, Any], *, target_type: str = "Assignment") -> None:
        try:
            with self.row_store.session_factory() as session:
                record_audit_log(
                    session,
                    user_id=self.actor,
                    action=action,
                    target_type=target_type,
                    target_id=self.site,
                    payload=payload,
                )
        except SQLAlchemyError as exc:
            logger.warning("Could not record %s audit entry for %s: %s", action, self.site, exc)

    # ------------------------------------------------------------------
    # Per-person view

    def tasks_for_person(self, person_id: str, today: Optional[datetime.date] = None) -> List[BoardTask]:
        """Stored assignments this week that the person is responsible for."""
        today = today or datetime.date.today()
        names = {str(task["id"]): task.get("item_name") or "" for task in self.tasks}
        active_days = set(self.parade_days)
        result: List[BoardTask] = []
        for assignment in self.store:
            if assignment.parade_day not in active_days:
                continue
            name = names.get(assignment.task_id)
            if name is None:
                continue
            payload = assignment.payload
            responsible = False
            manual = False
            if isinstance(payload, ManuallyPinned):
                if payload.person_id == person_id:
                    responsible = manual = True
            else:
                if self.roster.person_id_for(payload.slot) == person_id:
                    responsible = True
                if payload.additional_person_id == person_id:
                    responsible = manual = True
            if not responsible:
                continue
            task_date = self.week_start + datetime.timedelta(days=assignment.parade_day)
            result.append(
                BoardTask(
                    task_id=assignment.task_id,
                    task_name=name,
                    parade_day=assignment.parade_day,
                    date=task_date,
                    deadline_time=payload.deadline_time,
                    is_manual=manual,
                    is_today=task_date == today,
                    is_past=task_date < today,
                )
            )
        result.sort(key=lambda task: (task.date, task.task_name))
        return result

from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional

from PySide6.QtCore import QDate
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QAbstractItemView,
    QCheckBox,
    QDateEdit,
    QGroupBox,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from board import ParadeBoard
from database import DAY_LABELS, format_week_label, normalize_week_start
from projector import PENDING_COLOR, STATE_PENDING_CLEAR, STATE_PENDING_REPLACE, DisplayInfo
from roles import can_delete, can_edit
from row_store import StorageError
from sync import SyncResult
from ui.assign_dialog import AssignTaskDialog
from validation import validate_board


class ParadeBoardPage(QWidget):
    """Task x parade-day grid with pending edits held until Save."""

    def __init__(self, board: ParadeBoard, user: Dict[str, str]) -> None:
        super().__init__()
        self.board = board
        self.user = user
        self.can_edit = can_edit(self.user.get("role", ""))
        self.can_delete = can_delete(self.user.get("role", ""))
        self._suppress_week_signal = False
        self._build_ui()
        self.refresh_all()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setSpacing(12)
        layout.addLayout(self._build_header())
        layout.addWidget(self._build_parade_days())
        layout.addWidget(self._build_grid())
        layout.addLayout(self._build_footer())

    def _build_header(self) -> QHBoxLayout:
        header = QHBoxLayout()
        header.setSpacing(8)

        self.prev_week_button = QPushButton("◀")
        self.prev_week_button.setFixedSize(30, 30)
        self.prev_week_button.clicked.connect(lambda: self._navigate_week(-7))
        header.addWidget(self.prev_week_button)

        self.week_picker = QDateEdit()
        self.week_picker.setCalendarPopup(True)
        self.week_picker.setDisplayFormat("yyyy-MM-dd")
        self.week_picker.dateChanged.connect(self._handle_week_picker_change)
        header.addWidget(self.week_picker)

        self.next_week_button = QPushButton("▶")
        self.next_week_button.setFixedSize(30, 30)
        self.next_week_button.clicked.connect(lambda: self._navigate_week(7))
        header.addWidget(self.next_week_button)

        self.week_label = QLabel("Week of --")
        header.addWidget(self.week_label)
        header.addStretch()
        return header

    def _build_parade_days(self) -> QGroupBox:
        box = QGroupBox("Parade days")
        row = QHBoxLayout(box)
        self.day_checks: List[QCheckBox] = []
        for label in DAY_LABELS:
            check = QCheckBox(label)
            self.day_checks.append(check)
            row.addWidget(check)
        self.save_days_button = QPushButton("Save days")
        self.save_days_button.clicked.connect(self._handle_save_days)
        row.addWidget(self.save_days_button)
        row.addStretch()
        return box

    def _build_grid(self) -> QWidget:
        container = QGroupBox("Cleaning assignments")
        grid_layout = QVBoxLayout(container)
        self.table = QTableWidget()
        self.table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.cellDoubleClicked.connect(self._open_cell)
        grid_layout.addWidget(self.table)
        return container

    def _build_footer(self) -> QVBoxLayout:
        footer = QVBoxLayout()
        controls = QHBoxLayout()
        controls.setSpacing(10)

        self.save_button = QPushButton("Save changes")
        self.save_button.clicked.connect(self._handle_save)
        controls.addWidget(self.save_button)

        self.discard_button = QPushButton("Discard changes")
        self.discard_button.clicked.connect(self._handle_discard)
        controls.addWidget(self.discard_button)

        self.add_task_button = QPushButton("Add task")
        self.add_task_button.clicked.connect(self._handle_add_task)
        controls.addWidget(self.add_task_button)

        self.rename_task_button = QPushButton("Rename task")
        self.rename_task_button.clicked.connect(self._handle_rename_task)
        controls.addWidget(self.rename_task_button)

        self.delete_task_button = QPushButton("Delete task")
        self.delete_task_button.clicked.connect(self._handle_delete_task)
        controls.addWidget(self.delete_task_button)

        self.validate_button = QPushButton("Check board")
        self.validate_button.clicked.connect(self._handle_validate)
        controls.addWidget(self.validate_button)
        controls.addStretch()
        footer.addLayout(controls)

        self.status_label = QLabel()
        self.status_label.setWordWrap(True)
        footer.addWidget(self.status_label)
        return footer

    # ------------------------------------------------------------------

    def refresh_all(self) -> None:
        try:
            self.board.load()
        except StorageError as exc:
            QMessageBox.critical(self, "Load failed", str(exc))
            return
        self._sync_week_picker()
        self._sync_day_checks()
        self.render_grid()

    def _sync_day_checks(self) -> None:
        for day, check in enumerate(self.day_checks):
            check.setChecked(day in self.board.parade_days)

    def render_grid(self) -> None:
        days = self.board.parade_days
        tasks = self.board.tasks
        self.table.clear()
        self.table.setColumnCount(len(days))
        self.table.setRowCount(len(tasks))
        self.table.setHorizontalHeaderLabels([DAY_LABELS[day] for day in days])
        self.table.setVerticalHeaderLabels([task.get("item_name") or "" for task in tasks])
        for row, entry in enumerate(self.board.grid()):
            for column, cell in enumerate(entry["cells"]):
                self.table.setItem(row, column, self._cell_item(cell["display"], cell["state"]))
        self._update_action_states()

    def _cell_item(self, display: DisplayInfo, state: str) -> QTableWidgetItem:
        item = QTableWidgetItem(self._format_cell_text(display, state))
        item.setForeground(QColor(display.badge))
        if state in (STATE_PENDING_REPLACE, STATE_PENDING_CLEAR):
            item.setBackground(QColor(PENDING_COLOR))
        item.setToolTip(display.label)
        return item

    @staticmethod
    def _format_cell_text(display: DisplayInfo, state: str) -> str:
        if state == STATE_PENDING_CLEAR:
            return "(will be cleared)"
        if not display.is_assigned:
            return "-"
        lines = [display.label]
        lines.append(display.person.first_name if display.person else "Nobody on duty")
        if display.additional_person:
            lines.append(f"+ {display.additional_person.first_name}")
        if display.deadline_label:
            lines.append(f"by {display.deadline_label}")
        return "\n".join(lines)

    def _open_cell(self, row: int, column: int) -> None:
        if not self.can_edit:
            return
        task = self.board.tasks[row]
        day = self.board.parade_days[column]
        task_id = str(task["id"])
        dialog = AssignTaskDialog(
            task_name=task.get("item_name") or "",
            day_label=DAY_LABELS[day],
            people=self.board.roster.list_people(),
            assignment=self.board.effective(task_id, day),
            on_save=lambda values: self._apply_form(task_id, day, values),
            on_clear=lambda: self._apply_clear(task_id, day),
            parent=self,
        )
        dialog.exec()

    def _apply_form(self, task_id: str, day: int, values: Dict[str, Any]) -> None:
        self.board.apply_form(
            task_id,
            day,
            values["mode"],
            schedule_option=values.get("schedule_option"),
            manual_person_id=values.get("manual_person_id"),
            additional_person_id=values.get("additional_person_id"),
            deadline_time=values.get("deadline_time"),
        )
        self.render_grid()

    def _apply_clear(self, task_id: str, day: int) -> None:
        self.board.set_clear(task_id, day)
        self.render_grid()

    def _handle_save(self) -> None:
        result = self.board.save()
        self.render_grid()
        self._report_result(result)

    def _report_result(self, result: SyncResult) -> None:
        summary = f"Saved: {result.inserted} added, {result.updated} updated, {result.deleted} removed."
        if result.ok:
            self.status_label.setText(summary)
            return
        details = "\n".join(f"{failure.operation}: {failure.message}" for failure in result.failures)
        self.status_label.setText(f"{summary} Some changes failed.")
        QMessageBox.warning(self, "Save incomplete", f"{summary}\n\n{details}")

    def _handle_discard(self) -> None:
        if not self.board.has_changes():
            return
        confirm = QMessageBox.question(self, "Discard changes", "Drop every unsaved change on this board?")
        if confirm == QMessageBox.Yes:
            self.board.discard_all()
            self.render_grid()

    def _handle_save_days(self) -> None:
        selected = [day for day, check in enumerate(self.day_checks) if check.isChecked()]
        try:
            self.board.save_parade_days(selected)
        except StorageError as exc:
            QMessageBox.warning(self, "Parade days", str(exc))
        self._sync_day_checks()
        self.render_grid()

    def _selected_task(self) -> Optional[Dict[str, Any]]:
        row = self.table.currentRow()
        if row < 0 or row >= len(self.board.tasks):
            return None
        return self.board.tasks[row]

    def _handle_add_task(self) -> None:
        name, ok = QInputDialog.getText(self, "Add task", "Task name:")
        if ok:
            self._save_task(name)

    def _handle_rename_task(self) -> None:
        task = self._selected_task()
        if task is None:
            return
        name, ok = QInputDialog.getText(
            self,
            "Rename task",
            "Task name:",
            QLineEdit.Normal,
            task.get("item_name") or "",
        )
        if ok:
            self._save_task(name, str(task["id"]))

    def _save_task(self, name: str, task_id: Optional[str] = None) -> None:
        try:
            self.board.save_task(name, task_id)
        except ValueError as exc:
            QMessageBox.warning(self, "Task", str(exc))
            return
        except StorageError as exc:
            QMessageBox.warning(self, "Task", str(exc))
        self.render_grid()

    def _handle_delete_task(self) -> None:
        task = self._selected_task()
        if task is None:
            return
        confirm = QMessageBox.question(
            self,
            "Delete task",
            f"Delete '{task.get('item_name')}' and all of its assignments?",
        )
        if confirm != QMessageBox.Yes:
            return
        try:
            self.board.remove_task(str(task["id"]))
        except StorageError as exc:
            QMessageBox.warning(self, "Delete task", str(exc))
        self.render_grid()

    def _handle_validate(self) -> None:
        report = validate_board(self.board)
        lines = [f"{'OK' if check['status'] == 'ok' else 'FAIL'} - {check['label']}" for check in report["checks"]]
        failing = [check["details"] for check in report["checks"] if check["details"]]
        QMessageBox.information(self, "Board check", "\n".join(lines + [""] + failing))

    # ------------------------------------------------------------------

    def _sync_week_picker(self) -> None:
        start = self.board.week_start
        self._suppress_week_signal = True
        self.week_picker.setDate(QDate(start.year, start.month, start.day))
        self._suppress_week_signal = False
        self.week_label.setText(format_week_label(start))

    def _handle_week_picker_change(self) -> None:
        if self._suppress_week_signal:
            return
        qdate = self.week_picker.date()
        self._change_week(datetime.date(qdate.year(), qdate.month(), qdate.day()))

    def _navigate_week(self, delta_days: int) -> None:
        self._change_week(self.board.week_start + datetime.timedelta(days=delta_days))

    def _change_week(self, target: datetime.date) -> None:
        new_start = normalize_week_start(target)
        if new_start == self.board.week_start:
            return
        if self.board.has_changes():
            proceed = QMessageBox.question(
                self,
                "Unsaved changes",
                "Switching weeks drops unsaved changes. Continue?",
            )
            if proceed != QMessageBox.Yes:
                self._sync_week_picker()
                return
        self.board.week_start = new_start
        self.refresh_all()

    def _update_action_states(self) -> None:
        pending = self.board.has_changes()
        self.save_button.setEnabled(self.can_edit and pending)
        self.discard_button.setEnabled(pending)
        self.delete_task_button.setEnabled(self.can_delete)
        self.add_task_button.setEnabled(self.can_edit)
        self.rename_task_button.setEnabled(self.can_edit)
        self.save_days_button.setEnabled(self.can_edit)
        for check in self.day_checks:
            check.setEnabled(self.can_edit)
        if not self.can_edit:
            self.status_label.setText("Read-only mode. Sign in as a commander or admin to edit this board.")
        elif pending:
            self.status_label.setText(f"{len(self.board.edits)} unsaved change(s).")

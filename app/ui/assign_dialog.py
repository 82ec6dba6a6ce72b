from __future__ import annotations

import datetime
from typing import Any, Callable, Dict, List, Optional

from PySide6.QtCore import Qt, QTime
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QPushButton,
    QTimeEdit,
    QVBoxLayout,
)

from assignments import Assignment, ManuallyPinned, format_schedule_option, schedule_options
from overlay import MODE_MANUAL, MODE_SCHEDULE
from projector import BADGE_COLORS
from roster import Person


class AssignTaskDialog(QDialog):
    """Pick who cleans one task on one parade day."""

    def __init__(
        self,
        *,
        task_name: str,
        day_label: str,
        people: List[Person],
        assignment: Optional[Assignment] = None,
        on_save: Optional[Callable[[Dict[str, Any]], None]] = None,
        on_clear: Optional[Callable[[], None]] = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self.setModal(True)
        self.people = people
        self.assignment = assignment
        self.on_save = on_save
        self.on_clear = on_clear
        self.setWindowTitle(f"{task_name} - {day_label}")
        self._build_ui()
        if assignment is not None:
            self._load_assignment(assignment)
        self._sync_mode()

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        self.feedback_label = QLabel()
        self.feedback_label.setStyleSheet("color:#ff7a7a;")

        form = QFormLayout()

        self.mode_combo = QComboBox()
        self.mode_combo.addItem("From work schedule", MODE_SCHEDULE)
        self.mode_combo.addItem("Manual", MODE_MANUAL)
        self.mode_combo.currentIndexChanged.connect(self._sync_mode)
        form.addRow("Assign by", self.mode_combo)

        self.schedule_combo = QComboBox()
        self.schedule_combo.setToolTip("The person on duty in this shift is responsible.")
        self.schedule_combo.addItem("Select a shift", None)
        for option in schedule_options():
            index = self.schedule_combo.count()
            self.schedule_combo.addItem(f"{option['day_label']} - {option['shift_label']}", option["value"])
            color = QColor(BADGE_COLORS[option["slot"].shift.value])
            self.schedule_combo.setItemData(index, color, Qt.BackgroundRole)
            self.schedule_combo.setItemData(index, Qt.white, Qt.ForegroundRole)
        form.addRow("Shift", self.schedule_combo)

        self.manual_combo = self._person_combo("Select a person")
        form.addRow("Person", self.manual_combo)

        self.additional_combo = self._person_combo("Nobody")
        self.additional_combo.setToolTip("Optional second person who helps with the shift holder.")
        form.addRow("Additional person", self.additional_combo)

        deadline_row = QHBoxLayout()
        self.deadline_check = QCheckBox("Deadline")
        self.deadline_check.toggled.connect(lambda checked: self.deadline_edit.setEnabled(checked))
        deadline_row.addWidget(self.deadline_check)
        self.deadline_edit = QTimeEdit()
        self.deadline_edit.setDisplayFormat("HH:mm")
        self.deadline_edit.setTime(QTime(8, 0))
        self.deadline_edit.setEnabled(False)
        deadline_row.addWidget(self.deadline_edit)
        form.addRow("Finish by", deadline_row)

        layout.addLayout(form)
        layout.addWidget(self.feedback_label)

        button_box = QDialogButtonBox(QDialogButtonBox.Save | QDialogButtonBox.Cancel)
        button_box.accepted.connect(self._handle_save)
        button_box.rejected.connect(self.reject)

        self.clear_button = QPushButton("Clear")
        self.clear_button.setVisible(self.assignment is not None)
        self.clear_button.clicked.connect(self._handle_clear)

        action_row = QHBoxLayout()
        action_row.addWidget(button_box)
        action_row.addWidget(self.clear_button)
        action_row.addStretch()
        layout.addLayout(action_row)

    def _person_combo(self, placeholder: str) -> QComboBox:
        combo = QComboBox()
        combo.setEditable(True)
        combo.setInsertPolicy(QComboBox.NoInsert)
        combo.addItem(placeholder, None)
        for person in self.people:
            combo.addItem(person.full_name, person.id)
        if combo.completer():
            combo.completer().setCaseSensitivity(Qt.CaseInsensitive)
        return combo

    def _load_assignment(self, assignment: Assignment) -> None:
        payload = assignment.payload
        if isinstance(payload, ManuallyPinned):
            self.mode_combo.setCurrentIndex(self.mode_combo.findData(MODE_MANUAL))
            self._select(self.manual_combo, payload.person_id)
        else:
            self.mode_combo.setCurrentIndex(self.mode_combo.findData(MODE_SCHEDULE))
            if payload.slot is not None:
                self._select(self.schedule_combo, format_schedule_option(payload.slot))
            self._select(self.additional_combo, payload.additional_person_id)
        if payload.deadline_time is not None:
            self.deadline_check.setChecked(True)
            self.deadline_edit.setTime(QTime(payload.deadline_time.hour, payload.deadline_time.minute))

    @staticmethod
    def _select(combo: QComboBox, value: Optional[str]) -> None:
        if value is None:
            return
        index = combo.findData(value)
        if index >= 0:
            combo.setCurrentIndex(index)

    def _sync_mode(self) -> None:
        schedule = self.mode_combo.currentData() == MODE_SCHEDULE
        self.schedule_combo.setEnabled(schedule)
        self.additional_combo.setEnabled(schedule)
        self.manual_combo.setEnabled(not schedule)

    def form_values(self) -> Dict[str, Any]:
        deadline: Optional[datetime.time] = None
        if self.deadline_check.isChecked():
            qtime = self.deadline_edit.time()
            deadline = datetime.time(qtime.hour(), qtime.minute())
        return {
            "mode": self.mode_combo.currentData(),
            "schedule_option": self.schedule_combo.currentData(),
            "manual_person_id": self.manual_combo.currentData(),
            "additional_person_id": self.additional_combo.currentData(),
            "deadline_time": deadline,
        }

    def _handle_save(self) -> None:
        values = self.form_values()
        if values["mode"] == MODE_SCHEDULE and not values["schedule_option"]:
            self.feedback_label.setText("Select the shift whose holder cleans this task.")
            return
        if values["mode"] == MODE_MANUAL and not values["manual_person_id"]:
            self.feedback_label.setText("Select the person who cleans this task.")
            return
        if self.on_save:
            self.on_save(values)
        self.accept()

    def _handle_clear(self) -> None:
        if self.on_clear:
            self.on_clear()
        self.accept()

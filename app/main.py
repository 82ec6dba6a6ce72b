from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import QApplication, QMainWindow, QMessageBox

from board import ParadeBoard
from database import init_database
from roles import defined_roles, role_label
from ui.parade_board import ParadeBoardPage

THEME_STYLESHEET = """
QWidget {
    background-color: #090a0e;
    color: #f5f6fa;
    font-family: 'Segoe UI', sans-serif;
    font-size: 15px;
}

QGroupBox, QDialog {
    background-color: #111217;
    border: 1px solid #1c1d23;
    border-radius: 12px;
}

QGroupBox {
    margin-top: 20px;
    padding: 20px;
}

QGroupBox::title {
    color: #f9d24a;
    font-weight: 600;
    subcontrol-origin: margin;
    subcontrol-position: top left;
    margin-left: 14px;
    padding: 2px 10px;
}

QPushButton {
    background-color: #f5b942;
    color: #0b0b0f;
    border-radius: 10px;
    padding: 10px 22px;
    font-weight: 600;
    border: none;
    min-height: 34px;
}

QPushButton:hover {
    background-color: #ffd36a;
}

QPushButton:disabled {
    background-color: #262730;
    color: #7d7f8f;
}

QComboBox,
QDateEdit,
QTimeEdit {
    background-color: #15161c;
    border: 1px solid #25262d;
    border-radius: 10px;
    padding: 8px 14px;
    color: #f5f6fa;
}

QTableWidget {
    background-color: #0e0f13;
    gridline-color: #25262d;
}
"""


class MainWindow(QMainWindow):
    def __init__(self, board: ParadeBoard, user: Dict[str, str]) -> None:
        super().__init__()
        self.board = board
        self.user = user
        self.setWindowTitle(f"Cleaning Parades - {board.site} ({role_label(user.get('role', ''))})")
        self.setMinimumSize(1100, 720)
        self.page = ParadeBoardPage(board, user)
        self.setCentralWidget(self.page)

    def closeEvent(self, event: QCloseEvent) -> None:
        if self.board.has_changes():
            confirm = QMessageBox.question(self, "Unsaved changes", "Close and drop unsaved changes?")
            if confirm != QMessageBox.Yes:
                event.ignore()
                return
        event.accept()


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cleaning parade assignment board")
    parser.add_argument("--site", required=True, help="Site whose board to open")
    parser.add_argument("--role", default="driver", choices=defined_roles(), help="Access role of the signed-in user")
    parser.add_argument("--user", default="local", help="Name recorded in the audit log")
    return parser.parse_args(argv)


def launch_app(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    app = QApplication(sys.argv[:1])
    app.setStyleSheet(THEME_STYLESHEET)
    init_database()
    user = {"username": args.user, "role": args.role}
    board = ParadeBoard(args.site, actor=args.user)
    window = MainWindow(board, user)
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(launch_app())

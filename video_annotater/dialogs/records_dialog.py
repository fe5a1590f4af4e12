# video_annotater/dialogs/records_dialog.py
from __future__ import annotations

from typing import List, Optional

from PyQt5.QtCore import Qt
from PyQt5.QtWidgets import (
    QAbstractItemView,
    QDialog,
    QDialogButtonBox,
    QLabel,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from ..domain import AnnotationRecord
from ..timeutils import ms_to_clock_str


RECORD_COLUMNS = ["file", "start", "stop", "IN", "OUT"]


class RecordsDialog(QDialog):
    """Read-only table of the well-formed lines in the folder's ledger."""

    def __init__(self, records: List[AnnotationRecord], ledger_name: str, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self.setWindowTitle(f"Annotations - {ledger_name}")
        self.resize(640, 420)

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel(f"{len(records)} record(s)"))

        self.table = QTableWidget(0, len(RECORD_COLUMNS))
        self.table.setHorizontalHeaderLabels(RECORD_COLUMNS)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        layout.addWidget(self.table, stretch=1)

        buttons = QDialogButtonBox(QDialogButtonBox.Close)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

        self.set_records(records)

    def set_records(self, records: List[AnnotationRecord]) -> None:
        self.table.setRowCount(len(records))
        for row, rec in enumerate(records):
            values = [
                rec.file_name,
                ms_to_clock_str(rec.start_ms),
                ms_to_clock_str(rec.stop_ms),
                str(rec.in_value),
                str(rec.out_value),
            ]
            for col, text in enumerate(values):
                item = QTableWidgetItem(text)
                if col >= 3:
                    item.setTextAlignment(Qt.AlignRight | Qt.AlignVCenter)
                self.table.setItem(row, col, item)

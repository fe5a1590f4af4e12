# video_annotater/widgets/file_list.py
from __future__ import annotations

from typing import Optional, Tuple

from PyQt5.QtCore import Qt, pyqtSignal
from PyQt5.QtGui import QBrush, QColor, QFont
from PyQt5.QtWidgets import QGroupBox, QLabel, QListWidget, QListWidgetItem, QVBoxLayout, QWidget

from ..domain import FileEntry, SessionSnapshot


PROCESSED_COLOR = "#3CB44B"
CURRENT_COLOR = "#1E90FF"


class FileListPanel(QGroupBox):
    """
    Left panel: catalog of the open folder with processed/current markers and a done/total counter.

    Emits:
      - file_activated(int) when the user picks a row (programmatic selection is silent)
    """
    file_activated = pyqtSignal(int)

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__("Files", parent)
        self._entries: Tuple[FileEntry, ...] = ()
        self._updating = False
        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(6, 6, 6, 6)
        layout.setSpacing(6)

        self.count_label = QLabel("0/0")
        self.count_label.setAlignment(Qt.AlignRight)
        layout.addWidget(self.count_label)

        self.list = QListWidget()
        self.list.currentRowChanged.connect(self._on_row_changed)
        layout.addWidget(self.list, stretch=1)

    # ---------------- Public API ----------------

    def set_snapshot(self, snap: SessionSnapshot) -> None:
        self._updating = True
        try:
            if self.list.count() != len(snap.files) or [e.display_name for e in self._entries] != [
                e.display_name for e in snap.files
            ]:
                self.list.clear()
                for e in snap.files:
                    self.list.addItem(QListWidgetItem(e.display_name))

            for row, e in enumerate(snap.files):
                self._style_item(self.list.item(row), e)

            self._entries = snap.files
            self.count_label.setText(snap.progress_text)
            self.restore_selection(snap.current_index)
        finally:
            self._updating = False

    def restore_selection(self, current_index: int) -> None:
        was = self._updating
        self._updating = True
        try:
            if 0 <= current_index < self.list.count():
                self.list.setCurrentRow(current_index)
            else:
                self.list.clearSelection()
                self.list.setCurrentRow(-1)
        finally:
            self._updating = was

    # ---------------- Internals ----------------

    def _style_item(self, item: Optional[QListWidgetItem], e: FileEntry) -> None:
        if item is None:
            return
        prefix = "✓ " if e.processed else ""
        item.setText(prefix + e.display_name)

        font = QFont(item.font())
        font.setBold(e.current)
        item.setFont(font)

        if e.current:
            item.setForeground(QBrush(QColor(CURRENT_COLOR)))
        elif e.processed:
            item.setForeground(QBrush(QColor(PROCESSED_COLOR)))
        else:
            item.setForeground(QBrush())

    def _on_row_changed(self, row: int) -> None:
        if self._updating or row < 0:
            return
        self.file_activated.emit(row)

# video_annotater/dialogs/tags_dialog.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt5.QtGui import QIntValidator
from PyQt5.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QFormLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QVBoxLayout,
)

from ..domain import EngineResult, Outcome
from ..timeutils import ms_to_clock_str

logger = logging.getLogger(__name__)


class TagsDialog(QDialog):
    """
    Modal IN/OUT entry shown after the end marker is captured.

    OK runs `on_commit(in_text, out_text)`; the dialog closes only when the
    commit succeeds, so validation errors are retried in place.
    """

    def __init__(
        self,
        file_name: str,
        begin_ms: Optional[int],
        end_ms: Optional[int],
        on_commit: Callable[[str, str], EngineResult],
        parent=None,
    ):
        super().__init__(parent)
        self.setWindowTitle("IN / OUT")
        self.setModal(True)

        self._on_commit = on_commit
        self.result_: Optional[EngineResult] = None

        layout = QVBoxLayout(self)
        layout.addWidget(
            QLabel(f"{file_name}\nStart {ms_to_clock_str(begin_ms)}, Stop {ms_to_clock_str(end_ms)}")
        )

        form = QFormLayout()
        self.in_edit = QLineEdit()
        self.out_edit = QLineEdit()
        for w in (self.in_edit, self.out_edit):
            w.setValidator(QIntValidator(self))
        form.addRow("IN:", self.in_edit)
        form.addRow("OUT:", self.out_edit)
        layout.addLayout(form)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._on_accept)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

        self.in_edit.setFocus()

    def _on_accept(self):
        try:
            res = self._on_commit(self.in_edit.text(), self.out_edit.text())
        except OSError as e:
            logger.exception("Ledger write failed")
            QMessageBox.critical(self, "Could not save annotation", str(e))
            return
        if res.outcome is Outcome.VALIDATION_ERROR:
            QMessageBox.warning(self, "Invalid input", res.message)
            return
        self.result_ = res
        self.accept()

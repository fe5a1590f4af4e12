# video_annotater/main_window.py
from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from PyQt5.QtCore import Qt
from PyQt5.QtMultimediaWidgets import QVideoWidget
from PyQt5.QtWidgets import (
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSizePolicy,
    QSlider,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from .dialogs.records_dialog import RecordsDialog
from .dialogs.tags_dialog import TagsDialog
from .domain import AppConfig, EngineResult, Outcome, SessionSnapshot
from .engine import AnnotationEngine
from .persistence import save_app_config
from .media_player import QtMediaPlayback
from .timeutils import ms_to_clock_str
from .widgets.file_list import FileListPanel

logger = logging.getLogger(__name__)

EMPTY_TIME = "--:--:--"


class MainWindow(QMainWindow):
    def __init__(self, config: Optional[AppConfig] = None, config_path: Optional[str] = None):
        super().__init__()
        self.setWindowTitle("Video Annotater")
        self.resize(1400, 860)

        self.cfg = config or AppConfig()
        self._config_path = config_path

        self.playback = QtMediaPlayback(self)
        self.engine = AnnotationEngine(self.playback, self.cfg, self)
        self.engine.state_changed.connect(self._render)
        self.engine.position_updated.connect(self._on_position)

        # Slider drag: position events must not fight the user's thumb.
        self._user_scrubbing = False

        self._build_ui()
        self.playback.set_video_output(self.video)
        self._render(self.engine.snapshot())

    # ---------------- UI ----------------

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        main_layout = QVBoxLayout(central)
        main_layout.setContentsMargins(6, 6, 6, 6)
        main_layout.setSpacing(6)

        top = QHBoxLayout()
        self.btn_open = QPushButton("Open Folder (Ctrl+O)")
        self.btn_open.clicked.connect(self._choose_folder)
        self.folder_label = QLabel("No folder")
        self.folder_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        top.addWidget(self.btn_open)
        self.btn_records = QPushButton("Records (Ctrl+R)")
        self.btn_records.clicked.connect(self._show_records)
        top.addWidget(self.folder_label, stretch=1)
        top.addWidget(self.btn_records)
        main_layout.addLayout(top)

        split = QSplitter(Qt.Horizontal)
        main_layout.addWidget(split, stretch=1)

        self.file_panel = FileListPanel()
        self.file_panel.file_activated.connect(self._select_file)
        split.addWidget(self.file_panel)

        right = QWidget()
        right_lay = QVBoxLayout(right)
        right_lay.setContentsMargins(0, 0, 0, 0)
        right_lay.setSpacing(6)

        self.video = QVideoWidget()
        self.video.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.placeholder = QLabel("Open a folder (Ctrl+O)")
        self.placeholder.setAlignment(Qt.AlignCenter)
        right_lay.addWidget(self.placeholder)
        right_lay.addWidget(self.video, stretch=1)

        time_row = QHBoxLayout()
        self.position_label = QLabel("00:00:00")
        self.duration_label = QLabel(EMPTY_TIME)
        self.slider = QSlider(Qt.Horizontal)
        self.slider.setRange(0, 0)
        self.slider.setEnabled(False)
        self.slider.sliderPressed.connect(self._on_slider_pressed)
        self.slider.sliderReleased.connect(self._on_slider_released)
        self.slider.sliderMoved.connect(self._on_slider_moved)
        time_row.addWidget(self.position_label)
        time_row.addWidget(self.slider, stretch=1)
        time_row.addWidget(self.duration_label)
        right_lay.addLayout(time_row)

        step_bar = QHBoxLayout()
        self.btn_start = QPushButton("START (S)")
        self.btn_begin = QPushButton("Begin (Q)")
        self.btn_end = QPushButton("End (W)")
        self.btn_next = QPushButton("Next (N)")
        self.btn_start.clicked.connect(self._start)
        self.btn_begin.clicked.connect(self._capture_begin)
        self.btn_end.clicked.connect(self._capture_end)
        self.btn_next.clicked.connect(self._next)
        self.begin_label = QLabel(EMPTY_TIME)
        self.end_label = QLabel(EMPTY_TIME)
        for w in (self.btn_start, self.btn_begin, self.btn_end, self.btn_next):
            step_bar.addWidget(w)
        step_bar.addSpacing(16)
        step_bar.addWidget(QLabel("Begin:"))
        step_bar.addWidget(self.begin_label)
        step_bar.addWidget(QLabel("End:"))
        step_bar.addWidget(self.end_label)
        step_bar.addStretch()

        self.speed_buttons: Dict[int, QPushButton] = {}
        for rate in self.cfg.playback_rates:
            b = QPushButton(f"{rate}x")
            b.setCheckable(True)
            b.clicked.connect(lambda _checked=False, _r=rate: self._set_rate(_r))
            self.speed_buttons[rate] = b
            step_bar.addWidget(b)
        right_lay.addLayout(step_bar)

        split.addWidget(right)
        split.setStretchFactor(0, 2)
        split.setStretchFactor(1, 8)

        for w in [self.btn_open, self.btn_records, self.btn_start, self.btn_begin, self.btn_end, self.btn_next]:
            w.setCursor(Qt.PointingHandCursor)
            w.setFocusPolicy(Qt.NoFocus)
        for w in self.speed_buttons.values():
            w.setCursor(Qt.PointingHandCursor)
            w.setFocusPolicy(Qt.NoFocus)

    # ---------------- Rendering ----------------

    def _render(self, snap: SessionSnapshot) -> None:
        """Everything enable-related is derived from the snapshot; nothing is cached here."""
        self.folder_label.setText(snap.folder or "No folder")
        if snap.folder:
            self.setWindowTitle(f"Video Annotater - {os.path.basename(snap.folder)}")
        else:
            self.setWindowTitle("Video Annotater")

        self.file_panel.set_snapshot(snap)

        self.video.setVisible(snap.has_current)
        self.placeholder.setVisible(not snap.has_current)
        if not snap.has_current:
            self.placeholder.setText("Press START (S) to begin" if snap.total_count else "Open a folder (Ctrl+O)")

        self.btn_records.setEnabled(bool(snap.folder))
        self.btn_start.setEnabled(snap.can_start)
        self.btn_begin.setEnabled(snap.can_capture_begin)
        self.btn_end.setEnabled(snap.can_capture_end)
        self.btn_next.setEnabled(snap.can_next)

        self.begin_label.setText(ms_to_clock_str(snap.trim_begin_ms) if snap.trim_begin_ms is not None else EMPTY_TIME)
        self.end_label.setText(ms_to_clock_str(snap.trim_end_ms) if snap.trim_end_ms is not None else EMPTY_TIME)

        if snap.duration_ms:
            self.slider.setEnabled(True)
            self.slider.setRange(0, int(snap.duration_ms))
            self.duration_label.setText(ms_to_clock_str(snap.duration_ms))
        else:
            self.slider.setEnabled(False)
            self.slider.setRange(0, 0)
            self.duration_label.setText(EMPTY_TIME)
        self._on_position(snap.position_ms)

        for rate, b in self.speed_buttons.items():
            b.setChecked(rate == snap.rate)

    def _on_position(self, pos_ms: int) -> None:
        if self._user_scrubbing:
            return
        self.position_label.setText(ms_to_clock_str(pos_ms))
        self.slider.blockSignals(True)
        try:
            self.slider.setValue(int(pos_ms))
        finally:
            self.slider.blockSignals(False)

    def _report(self, res: EngineResult) -> EngineResult:
        """Surface non-OK outcomes as message boxes."""
        if res.outcome in (Outcome.ALL_PROCESSED, Outcome.EMPTY_CATALOG):
            QMessageBox.information(self, "Video Annotater", res.message)
        elif res.outcome in (Outcome.NOT_FOUND, Outcome.ALREADY_PROCESSED, Outcome.VALIDATION_ERROR):
            QMessageBox.warning(self, "Video Annotater", res.message)
        return res

    # ---------------- Folder ----------------

    def _choose_folder(self):
        start_dir = self.cfg.last_folder if os.path.isdir(self.cfg.last_folder or "") else ""
        d = QFileDialog.getExistingDirectory(self, "Select a folder with video files", start_dir)
        if d:
            self.open_folder(d)

    def open_folder(self, folder: str) -> None:
        if not self._confirm_leave_session():
            return
        try:
            res = self.engine.open_folder(folder)
        except OSError as e:
            logger.exception("Could not open %s", folder)
            QMessageBox.critical(self, "Could not open folder", str(e))
            return

        if res.outcome is Outcome.EMPTY_CATALOG:
            self._report(res)
            return

        self._remember_folder(folder)

        if res.outcome is Outcome.RESUME_OFFERED:
            answer = QMessageBox.question(
                self, "Resume session", res.message, QMessageBox.Yes | QMessageBox.No, QMessageBox.Yes
            )
            if answer == QMessageBox.Yes:
                self._report(self.engine.resume())
            else:
                self.engine.decline_resume()
        elif res.snapshot.stale_marker:
            QMessageBox.warning(
                self,
                "Resume session",
                f"{self.cfg.marker_filename} exists but could not be read. It was left untouched.",
            )

    def _remember_folder(self, folder: str) -> None:
        if self.cfg.last_folder == folder:
            return
        self.cfg.last_folder = folder
        try:
            save_app_config(self.cfg, self._config_path)
        except OSError as e:
            logger.warning("Could not save config: %s", e)

    # ---------------- Actions ----------------

    def _start(self):
        self._report(self.engine.start())

    def _next(self):
        self._report(self.engine.next())

    def _select_file(self, index: int):
        res = self._report(self.engine.select_file(index))
        if not res.ok:
            self.file_panel.restore_selection(res.snapshot.current_index)

    def _capture_begin(self):
        self.engine.capture_begin()

    def _capture_end(self):
        res = self.engine.capture_end()
        if not res.ok:
            return
        snap = res.snapshot
        dlg = TagsDialog(
            snap.current_name or "",
            snap.trim_begin_ms,
            snap.trim_end_ms,
            self.engine.commit_tags,
            self,
        )
        if dlg.exec_() != TagsDialog.Accepted:
            self.engine.cancel_tags()

    def _set_rate(self, rate: int):
        self.engine.set_rate(rate)

    def _show_records(self):
        if not self.engine.snapshot().folder:
            return
        try:
            records = self.engine.ledger_records()
        except OSError as e:
            logger.exception("Could not read %s", self.cfg.ledger_filename)
            QMessageBox.critical(self, "Could not read annotations", str(e))
            return
        RecordsDialog(records, self.cfg.ledger_filename, self).exec_()

    # ---------------- Slider ----------------

    def _on_slider_pressed(self) -> None:
        self._user_scrubbing = True

    def _on_slider_moved(self, value: int) -> None:
        self.position_label.setText(ms_to_clock_str(value))

    def _on_slider_released(self) -> None:
        self._user_scrubbing = False
        self.engine.seek(int(self.slider.value()))

    # ---------------- Keyboard ----------------

    def keyPressEvent(self, event):
        if isinstance(self.focusWidget(), QLineEdit):
            super().keyPressEvent(event)
            return

        snap = self.engine.snapshot()
        key = event.key()
        if key == Qt.Key_O and event.modifiers() & Qt.ControlModifier:
            self._choose_folder()
        elif key == Qt.Key_R and event.modifiers() & Qt.ControlModifier:
            self._show_records()
        elif key == Qt.Key_S:
            if snap.can_start:
                self._start()
        elif key == Qt.Key_Q:
            if snap.can_capture_begin:
                self._capture_begin()
        elif key == Qt.Key_W:
            if snap.can_capture_end:
                self._capture_end()
        elif key == Qt.Key_N:
            if snap.can_next:
                self._next()
        elif key == Qt.Key_Space:
            self.engine.toggle_play_pause()
        elif Qt.Key_1 <= key <= Qt.Key_9 and (key - Qt.Key_0) in self.speed_buttons:
            self._set_rate(key - Qt.Key_0)
        else:
            super().keyPressEvent(event)
            return
        event.accept()

    # ---------------- Closing ----------------

    def _confirm_leave_session(self) -> bool:
        """Offer to save a continuation marker. False means the user cancelled."""
        decision = self.engine.close_session()
        if decision.should_persist_marker:
            answer = QMessageBox.question(
                self,
                "Save progress",
                f"There are unprocessed videos. Save progress to {self.cfg.marker_filename}?",
                QMessageBox.Yes | QMessageBox.No | QMessageBox.Cancel,
                QMessageBox.Yes,
            )
            if answer == QMessageBox.Cancel:
                return False
            if answer == QMessageBox.Yes:
                try:
                    self.engine.persist_continuation(decision)
                except OSError as e:
                    logger.exception("Could not write continuation marker")
                    QMessageBox.critical(self, "Could not save progress", str(e))
                    return False
        self.engine.discard_session()
        return True

    def closeEvent(self, event):
        if not self._confirm_leave_session():
            event.ignore()
            return
        super().closeEvent(event)

# video_annotater/engine.py
from __future__ import annotations

import logging
from typing import List, Optional, Union

from PyQt5.QtCore import QObject, Qt, pyqtSignal

from .domain import (
    AnnotationRecord,
    AppConfig,
    CloseDecision,
    ContinuationMarker,
    EngineResult,
    FileEntry,
    Outcome,
    SessionSnapshot,
    SessionState,
    TrimPhase,
    is_processed,
)
from .errors import MarkerNotFoundError, TagValidationError, TrimStateError
from .media_catalog import scan_folder
from .navigation import count_processed, find_first_unprocessed, find_next_unprocessed, has_unprocessed
from .persistence import (
    append_record,
    clear_marker,
    load_processed,
    load_records,
    marker_exists,
    read_marker,
    require_marker_target,
    write_marker,
)
from .playback import PlaybackPort
from .timeutils import known_duration, ms_to_clock_str, normalize_position
from .trim import TrimWorkflow, parse_tags

logger = logging.getLogger(__name__)

TagInput = Union[str, int, None]


class AnnotationEngine(QObject):
    """
    Session/annotation engine for one folder at a time.

    Owns the SessionState; the GUI only calls the operations below and reads
    SessionSnapshot values. Recoverable conditions come back as EngineResult
    outcomes. OSError from ledger/marker/scan I/O propagates.

    Playback port events are connected queued, so they are applied in arrival
    order on the thread this object lives on, whichever thread emitted them.
    Each event is stamped with the load generation current when it was emitted;
    events stamped before the latest load are dropped on arrival.
    """

    # Emitted with a fresh SessionSnapshot after every state mutation
    state_changed = pyqtSignal(object)
    # Emitted with the playback position (ms); kept separate because it is frequent
    position_updated = pyqtSignal(int)

    # Port events re-emitted with the load generation: (generation, value)
    _length_stamped = pyqtSignal(int, int)
    _position_stamped = pyqtSignal(int, int)
    _end_stamped = pyqtSignal(int)

    def __init__(self, port: PlaybackPort, config: Optional[AppConfig] = None, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.port = port
        self.cfg = config or AppConfig()

        self._state = SessionState()
        self._trim = self._new_workflow(self._state)

        self._generation = 0

        # Stamping runs in the emitting thread; handling is queued onto ours.
        self.port.length_known.connect(self._stamp_length, Qt.DirectConnection)
        self.port.position_changed.connect(self._stamp_position, Qt.DirectConnection)
        self.port.end_reached.connect(self._stamp_end, Qt.DirectConnection)
        self._length_stamped.connect(self._on_length_known, Qt.QueuedConnection)
        self._position_stamped.connect(self._on_position_changed, Qt.QueuedConnection)
        self._end_stamped.connect(self._on_end_reached, Qt.QueuedConnection)

    def _new_workflow(self, state: SessionState) -> TrimWorkflow:
        return TrimWorkflow(state, pre_roll_ms=self.cfg.pre_roll_ms, post_roll_ms=self.cfg.post_roll_ms)

    # ---------------- Snapshots / results ----------------

    def snapshot(self) -> SessionSnapshot:
        st = self._state
        files = tuple(
            FileEntry(
                display_name=v.display_name,
                processed=is_processed(st.processed, v.display_name),
                current=(i == st.current_index),
            )
            for i, v in enumerate(st.catalog)
        )
        cur = st.current_file()
        return SessionSnapshot(
            folder=st.folder,
            files=files,
            current_index=st.current_index if cur else -1,
            current_name=cur.display_name if cur else None,
            trim_phase=st.trim_phase,
            trim_begin_ms=st.trim_begin_ms,
            trim_end_ms=st.trim_end_ms,
            position_ms=st.position_ms,
            duration_ms=st.duration_ms,
            reached_end=st.reached_end,
            playing=st.playing,
            rate=st.rate,
            processed_count=count_processed(st.catalog, st.processed),
            total_count=len(st.catalog),
            resume_pending=st.pending_marker is not None,
            stale_marker=st.stale_marker,
        )

    def _result(self, outcome: Outcome, message: str = "", record: Optional[AnnotationRecord] = None) -> EngineResult:
        snap = self.snapshot()
        if outcome is not Outcome.REJECTED:
            self.state_changed.emit(snap)
        return EngineResult(outcome=outcome, snapshot=snap, message=message, record=record)

    def _rejected(self, message: str) -> EngineResult:
        logger.debug("Rejected: %s", message)
        return self._result(Outcome.REJECTED, message)

    # ---------------- Folder / resume ----------------

    def open_folder(self, folder: str) -> EngineResult:
        catalog = scan_folder(folder, self.cfg.video_extensions)
        if not catalog:
            logger.info("No eligible videos in %s", folder)
            exts = ", ".join(self.cfg.video_extensions)
            return self._result(Outcome.EMPTY_CATALOG, f"No {exts} files found in this folder.")

        processed = load_processed(folder, self.cfg.ledger_filename)

        self.port.stop()
        self._generation += 1
        self._state = SessionState(folder=folder, catalog=catalog, processed=processed)
        self._trim = self._new_workflow(self._state)
        logger.info(
            "Opened %s: %d file(s), %d already annotated",
            folder, len(catalog), count_processed(catalog, processed),
        )

        marker = read_marker(folder, self.cfg.marker_filename)
        if marker is not None:
            self._state.pending_marker = marker
            return self._result(
                Outcome.RESUME_OFFERED,
                f"Found {self.cfg.marker_filename}. Resume from {marker.file_name} "
                f"at {ms_to_clock_str(marker.position_ms)}?",
            )
        if marker_exists(folder, self.cfg.marker_filename):
            self._state.stale_marker = True
            logger.warning("Unreadable continuation marker left in place in %s", folder)

        return self._result(Outcome.OK)

    def resume(self) -> EngineResult:
        st = self._state
        marker = st.pending_marker
        if marker is None or not st.folder:
            return self._rejected("There is no session to resume.")

        try:
            idx = require_marker_target(marker, st.catalog)
        except MarkerNotFoundError as e:
            # Marker stays on disk so the resume can be offered again next time.
            logger.warning("Continuation target %s not in %s", e.file_name, st.folder)
            return self._result(Outcome.NOT_FOUND, str(e))

        clear_marker(st.folder, self.cfg.marker_filename)
        st.pending_marker = None
        self._load_index(idx)
        st.pending_seek_ms = marker.position_ms
        self._apply_pending_seek()
        logger.info("Resumed %s at %s", marker.file_name, ms_to_clock_str(marker.position_ms))
        return self._result(Outcome.OK)

    def decline_resume(self) -> EngineResult:
        st = self._state
        if st.pending_marker is None or not st.folder:
            return self._rejected("There is no session to resume.")
        clear_marker(st.folder, self.cfg.marker_filename)
        st.pending_marker = None
        return self._result(Outcome.OK)

    # ---------------- Navigation ----------------

    def start(self) -> EngineResult:
        st = self._state
        if not st.is_loaded():
            return self._rejected("Open a folder first.")
        idx = find_first_unprocessed(st.catalog, st.processed)
        if idx is None:
            return self._result(Outcome.ALL_PROCESSED, "All videos have been processed.")
        self._load_index(idx)
        return self._result(Outcome.OK)

    def next(self) -> EngineResult:
        st = self._state
        if not st.is_loaded():
            return self._rejected("Open a folder first.")
        idx = find_next_unprocessed(st.catalog, st.processed, st.current_index)
        if idx is None:
            return self._result(Outcome.ALL_PROCESSED, "All videos have been processed.")
        self._load_index(idx)
        return self._result(Outcome.OK)

    def select_file(self, index: int) -> EngineResult:
        st = self._state
        if not (0 <= index < len(st.catalog)):
            return self._rejected(f"No file at index {index}.")
        v = st.catalog[index]
        if is_processed(st.processed, v.display_name):
            return self._result(
                Outcome.ALREADY_PROCESSED,
                f"'{v.display_name}' is already annotated.\n"
                f"Remove its line from {self.cfg.ledger_filename} to annotate it again.",
            )
        self._load_index(index)
        return self._result(Outcome.OK)

    def _load_index(self, index: int) -> None:
        st = self._state
        st.current_index = index
        self._trim.reset()
        st.reset_playback()

        v = st.catalog[index]
        self._generation += 1
        self.port.load(v.path)
        self.port.set_rate(st.rate)
        self.port.play()
        st.playing = True
        logger.info("Playing %s (%d/%d)", v.display_name, index + 1, len(st.catalog))

    # ---------------- Trim workflow ----------------

    def _live_position(self) -> int:
        pos = normalize_position(self.port.current_position())
        self._state.position_ms = pos
        return pos

    def _live_duration(self) -> Optional[int]:
        dur = known_duration(self._state.duration_ms)
        if dur is None:
            dur = known_duration(self.port.current_duration())
        return dur

    def capture_begin(self) -> EngineResult:
        if not self._state.has_current():
            return self._rejected("No video is loaded.")
        try:
            begin = self._trim.capture_begin(self._live_position())
        except TrimStateError as e:
            return self._rejected(str(e))
        logger.debug("Begin captured at %s", ms_to_clock_str(begin))
        return self._result(Outcome.OK)

    def capture_end(self) -> EngineResult:
        if not self._state.has_current():
            return self._rejected("No video is loaded.")
        try:
            end = self._trim.capture_end(self._live_position(), self._live_duration())
        except TrimStateError as e:
            return self._rejected(str(e))
        self.port.pause()
        self._state.playing = False
        logger.debug("End captured at %s; awaiting tags", ms_to_clock_str(end))
        return self._result(Outcome.OK)

    def commit_tags(self, in_value: TagInput, out_value: TagInput) -> EngineResult:
        st = self._state
        if st.trim_phase is not TrimPhase.AWAITING_TAGS or not st.has_current():
            return self._rejected("Capture begin and end before entering tags.")
        try:
            tag_in, tag_out = parse_tags(_tag_text(in_value), _tag_text(out_value))
        except TagValidationError as e:
            logger.warning("Tag validation failed: %s", e)
            return self._result(Outcome.VALIDATION_ERROR, "Enter valid integer values for IN and OUT.")

        cur = st.current_file()
        assert cur is not None and st.folder is not None
        record = self._trim.build_record(cur.display_name, tag_in, tag_out)
        append_record(st.folder, record, self.cfg.ledger_filename)

        self._trim.reset()
        st.processed.add(cur.key)
        self.port.play()
        st.playing = True
        return self._result(Outcome.OK, record=record)

    def cancel_tags(self) -> EngineResult:
        try:
            self._trim.cancel()
        except TrimStateError as e:
            return self._rejected(str(e))
        self.port.play()
        self._state.playing = True
        return self._result(Outcome.OK)

    # ---------------- Transport ----------------

    def toggle_play_pause(self) -> EngineResult:
        st = self._state
        if not st.has_current():
            return self._rejected("No video is loaded.")
        if st.playing:
            self.port.pause()
            st.playing = False
        else:
            self.port.play()
            st.playing = True
        return self._result(Outcome.OK)

    def set_rate(self, multiplier: int) -> EngineResult:
        if int(multiplier) <= 0:
            return self._rejected(f"Invalid playback rate: {multiplier}")
        self._state.rate = int(multiplier)
        self.port.set_rate(self._state.rate)
        return self._result(Outcome.OK)

    def seek(self, position_ms: int) -> EngineResult:
        st = self._state
        if not st.has_current():
            return self._rejected("No video is loaded.")
        pos = normalize_position(position_ms)
        dur = known_duration(st.duration_ms)
        if dur is not None:
            pos = min(pos, dur)
        self.port.seek(pos)
        st.position_ms = pos
        st.reached_end = False
        return self._result(Outcome.OK)

    # ---------------- Closing ----------------

    def close_session(self) -> CloseDecision:
        """
        Whether progress should be saved before the session is dropped, and where to.
        Does not write or discard anything.
        """
        st = self._state
        if not st.is_loaded():
            return CloseDecision(should_persist_marker=False)

        unprocessed_left = has_unprocessed(st.catalog, st.processed)
        video_unfinished = st.has_current() and not st.reached_end
        if not (unprocessed_left or video_unfinished):
            return CloseDecision(should_persist_marker=False)

        cur = st.current_file()
        if cur is not None:
            pos = normalize_position(self.port.current_position())
            target = ContinuationMarker(file_name=cur.display_name, position_ms=pos)
            return CloseDecision(should_persist_marker=True, marker_target=target)

        idx = find_first_unprocessed(st.catalog, st.processed)
        if idx is None:
            return CloseDecision(should_persist_marker=False)
        target = ContinuationMarker(file_name=st.catalog[idx].display_name, position_ms=0)
        return CloseDecision(should_persist_marker=True, marker_target=target)

    def persist_continuation(self, decision: CloseDecision) -> Optional[str]:
        st = self._state
        if not (decision.should_persist_marker and decision.marker_target and st.folder):
            return None
        return write_marker(st.folder, decision.marker_target, self.cfg.marker_filename)

    def discard_session(self) -> None:
        self.port.stop()
        self._generation += 1
        if self._state.folder:
            logger.info("Closed %s", self._state.folder)
        self._state = SessionState()
        self._trim = self._new_workflow(self._state)
        self.state_changed.emit(self.snapshot())

    # ---------------- Ledger view ----------------

    def ledger_records(self) -> List[AnnotationRecord]:
        if not self._state.folder:
            return []
        return load_records(self._state.folder, self.cfg.ledger_filename)

    # ---------------- Playback port events (engine thread) ----------------

    def _apply_pending_seek(self) -> None:
        st = self._state
        if st.pending_seek_ms is None or known_duration(st.duration_ms) is None:
            return
        pos = min(st.pending_seek_ms, st.duration_ms)
        st.pending_seek_ms = None
        self.port.seek(pos)
        st.position_ms = pos

    def _stamp_length(self, length_ms: int) -> None:
        self._length_stamped.emit(self._generation, length_ms)

    def _stamp_position(self, position_ms: int) -> None:
        self._position_stamped.emit(self._generation, position_ms)

    def _stamp_end(self) -> None:
        self._end_stamped.emit(self._generation)

    def _is_current(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug("Dropped playback event from load %d (now %d)", generation, self._generation)
            return False
        return self._state.has_current()

    def _on_length_known(self, generation: int, length_ms: int) -> None:
        st = self._state
        if not self._is_current(generation):
            return
        st.duration_ms = known_duration(length_ms)
        logger.debug("Length known: %s ms", length_ms)
        self._apply_pending_seek()
        self.state_changed.emit(self.snapshot())

    def _on_position_changed(self, generation: int, position_ms: int) -> None:
        st = self._state
        if not self._is_current(generation):
            return
        st.position_ms = normalize_position(position_ms)
        self.position_updated.emit(st.position_ms)

    def _on_end_reached(self, generation: int) -> None:
        st = self._state
        if not self._is_current(generation):
            return
        st.reached_end = True
        st.playing = False
        logger.debug("End reached: %s", st.catalog[st.current_index].display_name)
        self.state_changed.emit(self.snapshot())


def _tag_text(value: TagInput) -> str:
    if value is None:
        return ""
    return str(value)

# video_annotater/domain.py
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from .timeutils import ms_to_clock_str


# -----------------------------
# Defaults
# -----------------------------

DEFAULT_LEDGER_FILENAME = "Anonce.md"
DEFAULT_MARKER_FILENAME = "Continue.md"
DEFAULT_VIDEO_EXTENSIONS: Tuple[str, ...] = (".mp4", ".avi")
DEFAULT_PRE_ROLL_MS = 3000
DEFAULT_POST_ROLL_MS = 3000
DEFAULT_PLAYBACK_RATES: Tuple[int, ...] = (1, 2, 3, 4)


def name_key(name: str) -> str:
    """Case-insensitive comparison key for display names."""
    if not name:
        return ""
    return str(name).strip().casefold()


def is_processed(processed: Set[str], name: str) -> bool:
    return name_key(name) in processed


# -----------------------------
# Core Dataclasses
# -----------------------------

@dataclass(frozen=True)
class VideoFile:
    path: str
    display_name: str

    @property
    def key(self) -> str:
        return name_key(self.display_name)


@dataclass(frozen=True)
class AnnotationRecord:
    """
    One committed trim window.
    start_ms/stop_ms are playback positions (ms); in/out are the two user tags.
    """
    file_name: str
    start_ms: int
    stop_ms: int
    in_value: int
    out_value: int

    def to_ledger_line(self) -> str:
        return (
            f"{self.file_name} Start {ms_to_clock_str(self.start_ms)}, "
            f"Stop {ms_to_clock_str(self.stop_ms)}. "
            f"IN = {int(self.in_value)}, OUT = {int(self.out_value)}"
        )


@dataclass(frozen=True)
class ContinuationMarker:
    file_name: str
    position_ms: int = 0

    def to_text(self) -> str:
        return f"{self.file_name}\n{ms_to_clock_str(self.position_ms)}"


class TrimPhase(enum.Enum):
    IDLE = "idle"
    BEGIN_CAPTURED = "begin_captured"
    AWAITING_TAGS = "awaiting_tags"


class Outcome(enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"
    EMPTY_CATALOG = "empty_catalog"
    ALL_PROCESSED = "all_processed"
    ALREADY_PROCESSED = "already_processed"
    REJECTED = "rejected"
    RESUME_OFFERED = "resume_offered"


@dataclass
class SessionState:
    """
    In-memory state for the currently opened folder.
    Owned by AnnotationEngine; callers only ever see SessionSnapshot copies.
    """
    folder: Optional[str] = None
    catalog: List[VideoFile] = field(default_factory=list)
    processed: Set[str] = field(default_factory=set)

    current_index: int = -1

    # Trim capture (see trim.TrimWorkflow for the transitions)
    trim_phase: TrimPhase = TrimPhase.IDLE
    trim_begin_ms: Optional[int] = None
    trim_end_ms: Optional[int] = None

    # Mirrors of the playback port, fed by its events
    position_ms: int = 0
    duration_ms: Optional[int] = None
    reached_end: bool = False
    playing: bool = False
    rate: int = 1
    pending_seek_ms: Optional[int] = None

    # Resume bookkeeping
    pending_marker: Optional[ContinuationMarker] = None
    stale_marker: bool = False

    def is_loaded(self) -> bool:
        return bool(self.folder and self.catalog)

    def has_current(self) -> bool:
        return 0 <= self.current_index < len(self.catalog)

    def current_file(self) -> Optional[VideoFile]:
        if self.has_current():
            return self.catalog[self.current_index]
        return None

    def clear_trim(self) -> None:
        self.trim_phase = TrimPhase.IDLE
        self.trim_begin_ms = None
        self.trim_end_ms = None

    def reset_playback(self) -> None:
        self.position_ms = 0
        self.duration_ms = None
        self.reached_end = False
        self.playing = False
        self.pending_seek_ms = None


@dataclass(frozen=True)
class FileEntry:
    display_name: str
    processed: bool
    current: bool


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of SessionState plus the control enablement derived from it."""
    folder: Optional[str]
    files: Tuple[FileEntry, ...]
    current_index: int
    current_name: Optional[str]
    trim_phase: TrimPhase
    trim_begin_ms: Optional[int]
    trim_end_ms: Optional[int]
    position_ms: int
    duration_ms: Optional[int]
    reached_end: bool
    playing: bool
    rate: int
    processed_count: int
    total_count: int
    resume_pending: bool
    stale_marker: bool

    @property
    def has_current(self) -> bool:
        return self.current_index >= 0

    @property
    def can_start(self) -> bool:
        return self.total_count > 0 and not self.has_current

    @property
    def can_capture_begin(self) -> bool:
        return self.has_current and self.trim_phase is TrimPhase.IDLE

    @property
    def can_capture_end(self) -> bool:
        return self.has_current and self.trim_phase is TrimPhase.BEGIN_CAPTURED

    @property
    def awaiting_tags(self) -> bool:
        return self.trim_phase is TrimPhase.AWAITING_TAGS

    @property
    def can_next(self) -> bool:
        return self.has_current and not self.awaiting_tags

    @property
    def progress_text(self) -> str:
        return f"{self.processed_count}/{self.total_count}"


@dataclass(frozen=True)
class EngineResult:
    outcome: Outcome
    snapshot: SessionSnapshot
    message: str = ""
    record: Optional[AnnotationRecord] = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


@dataclass(frozen=True)
class CloseDecision:
    should_persist_marker: bool
    marker_target: Optional[ContinuationMarker] = None


# -----------------------------
# Config payload
# -----------------------------

@dataclass
class AppConfig:
    """
    Stored in ~/.video_annotater/config.json (or the --config path).
    """
    ledger_filename: str = DEFAULT_LEDGER_FILENAME
    marker_filename: str = DEFAULT_MARKER_FILENAME
    video_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_VIDEO_EXTENSIONS))
    pre_roll_ms: int = DEFAULT_PRE_ROLL_MS
    post_roll_ms: int = DEFAULT_POST_ROLL_MS
    playback_rates: List[int] = field(default_factory=lambda: list(DEFAULT_PLAYBACK_RATES))
    log_level: str = "INFO"
    log_dir: str = ""
    last_folder: str = ""

    def to_dict(self) -> Dict:
        return {
            "ledger_filename": self.ledger_filename,
            "marker_filename": self.marker_filename,
            "video_extensions": list(self.video_extensions),
            "pre_roll_ms": int(self.pre_roll_ms),
            "post_roll_ms": int(self.post_roll_ms),
            "playback_rates": [int(r) for r in self.playback_rates],
            "log_level": self.log_level,
            "log_dir": self.log_dir,
            "last_folder": self.last_folder,
            "config_version": 1,
        }

    @staticmethod
    def from_dict(d: Dict) -> "AppConfig":
        exts = [normalize_extension(e) for e in (d.get("video_extensions") or DEFAULT_VIDEO_EXTENSIONS)]
        rates: List[int] = []
        for r in (d.get("playback_rates") or DEFAULT_PLAYBACK_RATES):
            try:
                if int(r) > 0:
                    rates.append(int(r))
            except (TypeError, ValueError):
                continue
        return AppConfig(
            ledger_filename=str(d.get("ledger_filename") or DEFAULT_LEDGER_FILENAME),
            marker_filename=str(d.get("marker_filename") or DEFAULT_MARKER_FILENAME),
            video_extensions=[e for e in exts if e] or list(DEFAULT_VIDEO_EXTENSIONS),
            pre_roll_ms=max(0, int(d.get("pre_roll_ms", DEFAULT_PRE_ROLL_MS))),
            post_roll_ms=max(0, int(d.get("post_roll_ms", DEFAULT_POST_ROLL_MS))),
            playback_rates=rates or list(DEFAULT_PLAYBACK_RATES),
            log_level=str(d.get("log_level") or "INFO").upper(),
            log_dir=str(d.get("log_dir") or ""),
            last_folder=str(d.get("last_folder") or ""),
        )


def normalize_extension(ext: str) -> str:
    """'MP4' / '.Mp4' -> '.mp4'."""
    s = str(ext or "").strip().lower()
    if not s:
        return ""
    return s if s.startswith(".") else "." + s

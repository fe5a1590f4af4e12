# video_annotater/persistence.py
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from typing import Dict, List, Optional, Set

from .domain import (
    DEFAULT_LEDGER_FILENAME,
    DEFAULT_MARKER_FILENAME,
    AnnotationRecord,
    AppConfig,
    ContinuationMarker,
    VideoFile,
    name_key,
)
from .errors import MarkerNotFoundError
from .media_catalog import find_by_name
from .timeutils import parse_clock_str

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser("~"), ".video_annotater", "config.json")


# -----------------------------
# Atomic file helpers
# -----------------------------

def _atomic_write_text(path: str, text: str, encoding: str = "utf-8") -> None:
    d = os.path.dirname(os.path.abspath(path))
    os.makedirs(d, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".tmp_", dir=d)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _atomic_write_json(path: str, payload: Dict) -> None:
    text = json.dumps(payload, indent=2, ensure_ascii=False)
    _atomic_write_text(path, text + "\n")


def _read_json(path: str) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# -----------------------------
# App config (~/.video_annotater/config.json)
# -----------------------------

def load_app_config(path: Optional[str] = None) -> AppConfig:
    """
    Loads the app config.

    If missing or invalid, returns defaults (the broken file is left alone).
    """
    path = path or DEFAULT_CONFIG_PATH
    if not os.path.exists(path):
        return AppConfig()
    try:
        data = _read_json(path)
        if not isinstance(data, dict):
            raise ValueError("config root must be an object")
        return AppConfig.from_dict(data)
    except (OSError, ValueError, TypeError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return AppConfig()


def save_app_config(cfg: AppConfig, path: Optional[str] = None) -> None:
    _atomic_write_json(path or DEFAULT_CONFIG_PATH, cfg.to_dict())


# -----------------------------
# Ledger (<folder>/Anonce.md)
# -----------------------------

_LEDGER_LINE_RE = re.compile(
    r"^(?P<name>\S+)\s+Start\s+(?P<start>\d+:\d{2}:\d{2}),\s*"
    r"Stop\s+(?P<stop>\d+:\d{2}:\d{2})\.\s*"
    r"IN\s*=\s*(?P<in>[+-]?\d+),\s*OUT\s*=\s*(?P<out>[+-]?\d+)\s*$"
)


def _read_lines(path: str) -> List[str]:
    # Files edited in Notepad may start with a BOM or carry legacy-encoded bytes.
    with open(path, "r", encoding="utf-8-sig", errors="replace") as f:
        return f.read().splitlines()


def ledger_path(folder: str, filename: str = DEFAULT_LEDGER_FILENAME) -> str:
    return os.path.join(folder, filename)


def load_processed(folder: str, filename: str = DEFAULT_LEDGER_FILENAME) -> Set[str]:
    """
    Names already annotated in this folder (case-folded).

    The ledger may have been edited by hand: only the first whitespace-delimited
    token of each non-blank line counts, and lines without whitespace are skipped.
    """
    path = ledger_path(folder, filename)
    if not os.path.exists(path):
        return set()

    raw = _read_lines(path)

    out: Set[str] = set()
    for line in raw:
        trimmed = line.strip()
        if not trimmed:
            continue
        parts = trimmed.split(None, 1)
        if len(parts) < 2:
            continue
        out.add(name_key(parts[0]))
    return out


def load_records(folder: str, filename: str = DEFAULT_LEDGER_FILENAME) -> List[AnnotationRecord]:
    """Parses the well-formed ledger lines back into records; anything else is skipped."""
    path = ledger_path(folder, filename)
    if not os.path.exists(path):
        return []

    raw = _read_lines(path)

    out: List[AnnotationRecord] = []
    for line in raw:
        m = _LEDGER_LINE_RE.match(line.strip())
        if not m:
            continue
        out.append(
            AnnotationRecord(
                file_name=m.group("name"),
                start_ms=parse_clock_str(m.group("start")),
                stop_ms=parse_clock_str(m.group("stop")),
                in_value=int(m.group("in")),
                out_value=int(m.group("out")),
            )
        )
    return out


def append_record(folder: str, record: AnnotationRecord, filename: str = DEFAULT_LEDGER_FILENAME) -> str:
    """
    Appends one ledger line with a single write. Returns the ledger path.
    OSError propagates: losing an annotation silently is worse than failing.
    """
    path = ledger_path(folder, filename)
    line = record.to_ledger_line() + "\n"
    with open(path, "a+b") as f:
        f.seek(0, os.SEEK_END)
        if f.tell() > 0:
            f.seek(-1, os.SEEK_END)
            if f.read(1) != b"\n":
                line = "\n" + line
        f.write(line.encode("utf-8"))
    logger.info("Ledger += %s", line.strip())
    return path


# -----------------------------
# Continuation marker (<folder>/Continue.md)
# -----------------------------

def marker_path(folder: str, filename: str = DEFAULT_MARKER_FILENAME) -> str:
    return os.path.join(folder, filename)


def marker_exists(folder: str, filename: str = DEFAULT_MARKER_FILENAME) -> bool:
    return os.path.isfile(marker_path(folder, filename))


def read_marker(folder: str, filename: str = DEFAULT_MARKER_FILENAME) -> Optional[ContinuationMarker]:
    """
    Returns the stored resume point, or None.

    Malformed content (fewer than two lines, bad duration) also returns None;
    the file stays on disk for the caller to deal with.
    """
    path = marker_path(folder, filename)
    if not os.path.isfile(path):
        return None

    lines = _read_lines(path)

    if len(lines) < 2:
        logger.warning("Continuation marker %s has %d line(s); ignoring", path, len(lines))
        return None

    file_name = lines[0].strip()
    if not file_name:
        logger.warning("Continuation marker %s names no file; ignoring", path)
        return None
    try:
        position_ms = parse_clock_str(lines[1])
    except ValueError as e:
        logger.warning("Continuation marker %s: %s", path, e)
        return None

    return ContinuationMarker(file_name=file_name, position_ms=position_ms)


def write_marker(folder: str, marker: ContinuationMarker, filename: str = DEFAULT_MARKER_FILENAME) -> str:
    """Overwrites the marker wholesale (temp file + replace). Returns its path."""
    path = marker_path(folder, filename)
    _atomic_write_text(path, marker.to_text())
    logger.info("Continuation marker written: %s @ %d ms", marker.file_name, marker.position_ms)
    return path


def clear_marker(folder: str, filename: str = DEFAULT_MARKER_FILENAME) -> None:
    path = marker_path(folder, filename)
    try:
        os.remove(path)
    except FileNotFoundError:
        return
    logger.info("Continuation marker cleared: %s", path)


def resolve_marker(marker: ContinuationMarker, catalog: List[VideoFile]) -> Optional[int]:
    """Catalog index of the file the marker names, or None."""
    idx = find_by_name(catalog, marker.file_name)
    return idx if idx >= 0 else None


def require_marker_target(marker: ContinuationMarker, catalog: List[VideoFile]) -> int:
    idx = resolve_marker(marker, catalog)
    if idx is None:
        raise MarkerNotFoundError(marker.file_name)
    return idx

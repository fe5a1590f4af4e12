# video_annotater/timeutils.py
from __future__ import annotations

import re
from typing import Optional


# -----------------------------
# Time formatting / conversion
# -----------------------------

_CLOCK_RE = re.compile(r"^(\d+):([0-5]?\d)(?::([0-5]?\d)(?:\.(\d{1,7}))?)?$")


def ms_to_clock_str(ms: Optional[int]) -> str:
    """Milliseconds -> 'HH:MM:SS' (fractional seconds are truncated)."""
    if ms is None:
        ms = 0
    ms = max(0, int(ms))
    s = ms // 1000
    h = s // 3600
    m = (s // 60) % 60
    s = s % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


def parse_clock_str(text: str) -> int:
    """
    'HH:MM:SS' (optionally '.fff') or 'HH:MM' -> milliseconds.
    Raises ValueError on anything else.
    """
    s = (text or "").strip()
    match = _CLOCK_RE.match(s)
    if not match:
        raise ValueError(f"not a HH:MM:SS duration: {text!r}")
    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = int(match.group(3) or 0)
    frac = match.group(4) or ""
    ms = int((frac + "000")[:3]) if frac else 0
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + ms


def normalize_position(ms: Optional[int]) -> int:
    """Players report -1 (or None) before media is ready; treat those as zero."""
    if ms is None:
        return 0
    ms = int(ms)
    return ms if ms > 0 else 0


def known_duration(ms: Optional[int]) -> Optional[int]:
    """Duration if known and positive, else None (meaning: do not clamp)."""
    if ms is None:
        return None
    ms = int(ms)
    return ms if ms > 0 else None


# -----------------------------
# Trim window math
# -----------------------------

def trim_begin_from(position_ms: Optional[int], pre_roll_ms: int) -> int:
    return max(0, normalize_position(position_ms) - max(0, int(pre_roll_ms)))


def trim_end_from(position_ms: Optional[int], post_roll_ms: int, duration_ms: Optional[int]) -> int:
    end = normalize_position(position_ms) + max(0, int(post_roll_ms))
    dur = known_duration(duration_ms)
    if dur is not None and end > dur:
        end = dur
    return end

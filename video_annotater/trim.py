# video_annotater/trim.py
from __future__ import annotations

import re
from typing import Optional, Tuple

from .domain import DEFAULT_POST_ROLL_MS, DEFAULT_PRE_ROLL_MS, AnnotationRecord, SessionState, TrimPhase
from .errors import TagValidationError, TrimStateError
from .timeutils import trim_begin_from, trim_end_from


_INT_RE = re.compile(r"^[+-]?\d+$")


def parse_tag(text: Optional[str], label: str) -> int:
    s = (text or "").strip()
    if not _INT_RE.match(s):
        raise TagValidationError(f"{label} must be an integer (got {s!r}).")
    return int(s)


def parse_tags(in_text: Optional[str], out_text: Optional[str]) -> Tuple[int, int]:
    return parse_tag(in_text, "IN"), parse_tag(out_text, "OUT")


class TrimWorkflow:
    """
    Begin/end capture for the current file, stored on the bound SessionState.

        IDLE --capture_begin--> BEGIN_CAPTURED --capture_end--> AWAITING_TAGS
        AWAITING_TAGS --commit--> IDLE           (both markers cleared)
        AWAITING_TAGS --cancel--> BEGIN_CAPTURED (end marker cleared, begin kept)

    reset() forces IDLE from anywhere; it runs whenever a new file is loaded.
    Out-of-phase calls raise TrimStateError and leave the state untouched.
    """

    def __init__(
        self,
        state: SessionState,
        pre_roll_ms: int = DEFAULT_PRE_ROLL_MS,
        post_roll_ms: int = DEFAULT_POST_ROLL_MS,
    ):
        self.state = state
        self.pre_roll_ms = int(pre_roll_ms)
        self.post_roll_ms = int(post_roll_ms)

    @property
    def phase(self) -> TrimPhase:
        return self.state.trim_phase

    def reset(self) -> None:
        self.state.clear_trim()

    def _require(self, phase: TrimPhase, action: str) -> None:
        if self.state.trim_phase is not phase:
            raise TrimStateError(f"Cannot {action} while {self.state.trim_phase.value}.")

    def capture_begin(self, position_ms: Optional[int]) -> int:
        self._require(TrimPhase.IDLE, "capture begin")
        self.state.trim_begin_ms = trim_begin_from(position_ms, self.pre_roll_ms)
        self.state.trim_end_ms = None
        self.state.trim_phase = TrimPhase.BEGIN_CAPTURED
        return self.state.trim_begin_ms

    def capture_end(self, position_ms: Optional[int], duration_ms: Optional[int]) -> int:
        self._require(TrimPhase.BEGIN_CAPTURED, "capture end")
        self.state.trim_end_ms = trim_end_from(position_ms, self.post_roll_ms, duration_ms)
        self.state.trim_phase = TrimPhase.AWAITING_TAGS
        return self.state.trim_end_ms

    def build_record(self, file_name: str, in_value: int, out_value: int) -> AnnotationRecord:
        """The record a commit would produce; does not change the phase."""
        self._require(TrimPhase.AWAITING_TAGS, "commit tags")
        assert self.state.trim_begin_ms is not None and self.state.trim_end_ms is not None
        return AnnotationRecord(
            file_name=file_name,
            start_ms=self.state.trim_begin_ms,
            stop_ms=self.state.trim_end_ms,
            in_value=int(in_value),
            out_value=int(out_value),
        )

    def commit(self, file_name: str, in_value: int, out_value: int) -> AnnotationRecord:
        rec = self.build_record(file_name, in_value, out_value)
        self.reset()
        return rec

    def cancel(self) -> None:
        self._require(TrimPhase.AWAITING_TAGS, "cancel tags")
        self.state.trim_end_ms = None
        self.state.trim_phase = TrimPhase.BEGIN_CAPTURED

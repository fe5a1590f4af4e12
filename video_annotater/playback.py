# video_annotater/playback.py
from __future__ import annotations

from typing import Optional

from PyQt5.QtCore import QObject, pyqtSignal


class PlaybackPort(QObject):
    """
    Transport control the engine drives, plus the events it listens to.

    Signals may be emitted from any thread; AnnotationEngine connects them
    queued so handlers always run on the engine's own thread.
    """

    # Emitted once the media length is known (ms)
    length_known = pyqtSignal(int)
    # Emitted with the current playback position (ms)
    position_changed = pyqtSignal(int)
    # Emitted when playback reaches the end of the media
    end_reached = pyqtSignal()

    def load(self, path: str) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def seek(self, position_ms: int) -> None:
        raise NotImplementedError

    def set_rate(self, multiplier: float) -> None:
        raise NotImplementedError

    def current_position(self) -> int:
        """May be negative before media is ready."""
        raise NotImplementedError

    def current_duration(self) -> Optional[int]:
        """None until the length is known."""
        raise NotImplementedError

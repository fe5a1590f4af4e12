# video_annotater/media_player.py
from __future__ import annotations

import logging
import os
from typing import Optional

from PyQt5.QtCore import QObject, QUrl
from PyQt5.QtMultimedia import QMediaContent, QMediaPlayer

from .playback import PlaybackPort

logger = logging.getLogger(__name__)


class QtMediaPlayback(PlaybackPort):
    """PlaybackPort backed by a single QMediaPlayer."""

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._player = QMediaPlayer(None, QMediaPlayer.VideoSurface)
        self._player.durationChanged.connect(self._on_duration_changed)
        self._player.positionChanged.connect(self._on_position_changed)
        self._player.mediaStatusChanged.connect(self._on_media_status)
        self._player.error.connect(self._on_error)

    def set_video_output(self, widget) -> None:
        self._player.setVideoOutput(widget)

    # ---------------- PlaybackPort ----------------

    def load(self, path: str) -> None:
        if os.path.exists(path):
            self._player.setMedia(QMediaContent(QUrl.fromLocalFile(os.path.abspath(path))))
        else:
            logger.warning("Media file missing: %s", path)
            self._player.setMedia(QMediaContent())

    def play(self) -> None:
        self._player.play()

    def pause(self) -> None:
        self._player.pause()

    def stop(self) -> None:
        self._player.stop()

    def seek(self, position_ms: int) -> None:
        self._player.setPosition(max(0, int(position_ms)))

    def set_rate(self, multiplier: float) -> None:
        self._player.setPlaybackRate(float(multiplier))

    def current_position(self) -> int:
        return int(self._player.position())

    def current_duration(self) -> Optional[int]:
        dur = int(self._player.duration() or 0)
        return dur if dur > 0 else None

    # ---------------- QMediaPlayer signal handlers ----------------

    def _on_duration_changed(self, dur: int) -> None:
        if int(dur) > 0:
            self.length_known.emit(int(dur))

    def _on_position_changed(self, pos: int) -> None:
        self.position_changed.emit(int(pos))

    def _on_media_status(self, status) -> None:
        if status == QMediaPlayer.EndOfMedia:
            self.end_reached.emit()
        elif status == QMediaPlayer.InvalidMedia:
            logger.warning("Invalid media: %s", self._player.errorString())

    def _on_error(self, _err) -> None:
        logger.error("Playback error: %s", self._player.errorString())

# video_annotater/__init__.py
'''
video_annotater/
    __init__.py
    __main__.py            # command line: [folder] --config --log-level

    app.py                 # logging setup + QApplication boot
    main_window.py         # QMainWindow layout + wiring (renders engine snapshots)

    domain.py              # dataclasses: VideoFile, AnnotationRecord, SessionState, AppConfig, results
    engine.py              # AnnotationEngine: the caller-facing session operations
    trim.py                # TrimWorkflow state machine + IN/OUT tag parsing
    navigation.py          # first/next unprocessed search, processed counts
    media_catalog.py       # folder scan for eligible videos
    persistence.py         # config.json, ledger (Anonce.md), continuation marker (Continue.md)
    playback.py            # PlaybackPort: transport commands + queued events
    media_player.py        # QtMediaPlayback: PlaybackPort over QMediaPlayer
    timeutils.py           # HH:MM:SS <-> ms, trim window math
    errors.py              # exception types

    widgets/
      file_list.py         # file list with processed/current markers + done/total

    dialogs/
      tags_dialog.py       # IN/OUT entry after the end marker
      records_dialog.py    # read-only table of the ledger records
'''

from __future__ import annotations

__all__ = ["__version__", "run_app"]

__version__ = "0.1.0"


def run_app(*args, **kwargs) -> int:
    from .app import run_app as _run_app

    return _run_app(*args, **kwargs)

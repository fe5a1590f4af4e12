# video_annotater/media_catalog.py
from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional

from .domain import DEFAULT_VIDEO_EXTENSIONS, VideoFile, name_key, normalize_extension

logger = logging.getLogger(__name__)


def ext_lower(path: str) -> str:
    _, ext = os.path.splitext(path.strip())
    return ext.lower().strip()


def scan_folder(folder: str, extensions: Optional[Iterable[str]] = None) -> List[VideoFile]:
    """
    Lists eligible videos directly inside `folder` (no recursion).

    Order is case-insensitive by full path, so repeated scans of an unchanged
    folder give the same sequence. An empty result is not an error; a missing
    folder raises the usual OSError.
    """
    allowed = {normalize_extension(e) for e in (extensions or DEFAULT_VIDEO_EXTENSIONS)}
    allowed.discard("")

    paths: List[str] = []
    for name in os.listdir(folder):
        p = os.path.join(folder, name)
        if not os.path.isfile(p):
            continue
        if ext_lower(name) not in allowed:
            continue
        paths.append(p)

    # Tie-break on the raw path so names differing only by case still sort stably.
    paths.sort(key=lambda p: (p.casefold(), p))
    catalog = [VideoFile(path=p, display_name=os.path.basename(p)) for p in paths]
    logger.debug("Scanned %s: %d eligible file(s)", folder, len(catalog))
    return catalog


def find_by_name(catalog: List[VideoFile], file_name: str) -> int:
    """Index of the entry whose display name matches case-insensitively, or -1."""
    wanted = name_key(file_name)
    for i, v in enumerate(catalog):
        if v.key == wanted:
            return i
    return -1

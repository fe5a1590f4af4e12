# video_annotater/navigation.py
from __future__ import annotations

from typing import List, Optional, Set

from .domain import VideoFile


def find_first_unprocessed(catalog: List[VideoFile], processed: Set[str]) -> Optional[int]:
    for i, v in enumerate(catalog):
        if v.key not in processed:
            return i
    return None


def find_next_unprocessed(catalog: List[VideoFile], processed: Set[str], from_index: int) -> Optional[int]:
    """
    Forward from from_index+1 to the end, then wrap over 0..from_index (exclusive).
    from_index itself is never returned; -1 means "nothing loaded yet".
    """
    n = len(catalog)
    if n == 0:
        return None
    if from_index < 0:
        return find_first_unprocessed(catalog, processed)

    for i in range(from_index + 1, n):
        if catalog[i].key not in processed:
            return i
    for i in range(0, min(from_index, n)):
        if catalog[i].key not in processed:
            return i
    return None


def count_processed(catalog: List[VideoFile], processed: Set[str]) -> int:
    return sum(1 for v in catalog if v.key in processed)


def has_unprocessed(catalog: List[VideoFile], processed: Set[str]) -> bool:
    return find_first_unprocessed(catalog, processed) is not None

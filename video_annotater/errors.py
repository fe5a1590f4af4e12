# video_annotater/errors.py
from __future__ import annotations


class AnnotaterError(Exception):
    """Base for conditions the user can recover from."""


class TrimStateError(AnnotaterError):
    """A trim operation was requested in a phase that does not allow it."""


class TagValidationError(AnnotaterError, ValueError):
    """IN/OUT tag text is not an integer."""


class MarkerNotFoundError(AnnotaterError, LookupError):
    """The continuation marker names a file missing from the catalog."""

    def __init__(self, file_name: str):
        super().__init__(f"File '{file_name}' from the continuation marker was not found in the folder.")
        self.file_name = file_name

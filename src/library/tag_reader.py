# src/library/tag_reader.py — v1
"""Tag reader interface.

Binary codecs (ID3, MP4 atoms) live outside this package; the scanner
only needs something that turns a path into a TagSet.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path

from lumbago.core.models import TagSet

_ARTIST_TITLE_RE = re.compile(r"^\s*(?:\d{1,3}[\s.\-_]+)?(?P<artist>.+?)\s+-\s+(?P<title>.+?)\s*$")


class BaseTagReader(ABC):
    """Reads the tags stored in an audio file."""

    @abstractmethod
    def read(self, path: Path) -> TagSet:
        """Return the file's tags, or an empty TagSet."""


class NullTagReader(BaseTagReader):
    """Reads nothing. Every file starts with empty tags."""

    def read(self, path: Path) -> TagSet:
        return TagSet()


class FilenameTagReader(BaseTagReader):
    """Guesses artist and title from "Artist - Title.ext" file names.

    A leading track number ("01 - ", "01. ") is ignored.
    """

    def read(self, path: Path) -> TagSet:
        match = _ARTIST_TITLE_RE.match(Path(path).stem)
        if match is None:
            return TagSet()
        return TagSet(
            artist=match.group("artist").strip(),
            title=match.group("title").strip(),
            data_origin="file-metadata",
        )

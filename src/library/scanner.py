# src/library/scanner.py — v1
"""Library scanner — discover audio files and turn them into WorkItems.

Each file gets a fresh id, its identity from stat() (name, size, mtime)
and whatever tags the configured reader finds. Items start PENDING.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from lumbago.cache.fingerprint import identity_from_path
from lumbago.core.models import WorkItem
from lumbago.library.tag_reader import BaseTagReader, NullTagReader

if TYPE_CHECKING:
    from lumbago.config.settings import Settings

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS: frozenset[str] = frozenset(
    {"mp3", "m4a", "mp4", "flac", "wav", "ogg", "aac"}
)


class LibraryScanner:
    """Scan directories for audio files.

    Workflow:
        1. List files with a supported extension (recursive if enabled)
        2. Stat each file for its identity
        3. Read existing tags through the tag reader
    """

    def __init__(
        self,
        settings: Settings | None = None,
        tag_reader: BaseTagReader | None = None,
    ) -> None:
        self._settings = settings
        self._tag_reader = tag_reader or NullTagReader()

    def scan(
        self,
        scan_root: Path,
        recursive: bool | None = None,
        formats_filter: list[str] | None = None,
    ) -> list[WorkItem]:
        """Discover audio files under *scan_root*.

        Args:
            scan_root: Root directory to scan.
            recursive: Scan subdirectories. Defaults to settings, else True.
            formats_filter: Extensions to keep (without dots). Defaults to
                settings, else SUPPORTED_EXTENSIONS.

        Returns:
            WorkItems in sorted path order.
        """
        if not scan_root.is_dir():
            msg = f"Scan root is not a directory: {scan_root}"
            raise ValueError(msg)

        if recursive is None:
            recursive = self._settings.library_scan_recursive if self._settings else True
        allowed = self._allowed_formats(formats_filter)

        items: list[WorkItem] = []
        pattern_fn = scan_root.rglob if recursive else scan_root.glob
        for path in sorted(pattern_fn("*")):
            if not path.is_file():
                continue
            if path.suffix.lower().lstrip(".") not in allowed:
                continue
            try:
                item = self._build_item(path, scan_root)
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", path, e)
                continue
            items.append(item)

        logger.info(
            "Scanned %s: found %d audio files (recursive=%s)",
            scan_root, len(items), recursive,
        )
        return items

    def _build_item(self, path: Path, scan_root: Path) -> WorkItem:
        relative = path.relative_to(scan_root).as_posix()
        try:
            tags = self._tag_reader.read(path)
        except Exception as e:
            logger.warning("Could not read tags from %s: %s", path.name, e)
            tags = None
        item = WorkItem(
            identity=identity_from_path(path),
            path=str(path.resolve()),
            relative_path=f"{scan_root.name}/{relative}",
        )
        if tags is not None:
            item = item.model_copy(update={"original_tags": tags})
        return item

    def _allowed_formats(self, formats_filter: list[str] | None) -> frozenset[str]:
        if formats_filter:
            return frozenset(f.strip().lower().lstrip(".") for f in formats_filter if f.strip())
        if self._settings is not None:
            return frozenset(self._settings.library_formats_list)
        return SUPPORTED_EXTENSIONS

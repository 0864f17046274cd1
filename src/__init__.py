"""Lumbago — AI tagging orchestration engine for audio libraries."""

from lumbago.version import __version__

__all__ = ["__version__"]

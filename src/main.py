# src/main.py — v3
"""CLI entry point — analyze, cache, playlist commands.

Usage:
    lumbago analyze <directory> [--force] [--verify|--no-verify] [--single] [--concurrency N]
    lumbago cache clear
    lumbago cache stats
    lumbago cache purge
    lumbago playlist <directory> <prompt>
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections import Counter
from pathlib import Path

from lumbago.core.errors import LumbagoError
from lumbago.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except (LumbagoError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="lumbago",
        description=f"Lumbago v{__version__} — AI tagging for audio libraries",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Tag every audio file in a directory",
    )
    p_analyze.add_argument("directory", type=Path, help="Directory to scan")
    p_analyze.add_argument(
        "--force", action="store_true",
        help="Ignore cached results and query the AI service again",
    )
    p_analyze.add_argument(
        "--verify", dest="verify", action="store_true", default=None,
        help="Verify results with web search (default: from settings)",
    )
    p_analyze.add_argument(
        "--no-verify", dest="verify", action="store_false",
        help="Do not verify results with web search",
    )
    p_analyze.add_argument(
        "--single", action="store_true",
        help="Analyze files one by one through the work queue",
    )
    p_analyze.add_argument(
        "--concurrency", type=int, default=None,
        help="Max concurrent requests in single mode (default: from settings)",
    )
    p_analyze.add_argument(
        "--no-recursive", action="store_true",
        help="Disable recursive scanning",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Inspect or clear the AI cache")
    p_cache.add_argument("action", choices=["clear", "stats", "purge"])
    p_cache.set_defaults(func=_cmd_cache)

    # --- playlist ---
    p_playlist = subparsers.add_parser(
        "playlist", help="Generate a smart playlist from a directory",
    )
    p_playlist.add_argument("directory", type=Path, help="Directory to scan")
    p_playlist.add_argument("prompt", help="What the playlist should be")
    p_playlist.set_defaults(func=_cmd_playlist)

    return parser


def _load_settings(args: argparse.Namespace):
    from lumbago.config.settings import load_settings

    overrides: dict[str, object] = {}
    if getattr(args, "concurrency", None) is not None:
        overrides["max_concurrent_requests"] = args.concurrency
    return load_settings(**overrides)


async def _cmd_analyze(args: argparse.Namespace, settings) -> int:
    """Scan a directory and analyze it in batch or single mode."""
    from lumbago.api.facade import TaggingEngine

    directory: Path = args.directory
    if not directory.is_dir():
        logger.error("Not a directory: %s", directory)
        return 1

    engine = TaggingEngine.from_settings(settings)
    items = engine.add_directory(directory, recursive=False if args.no_recursive else None)
    if not items:
        print("No audio files found.")
        return 0

    try:
        if args.single:
            engine.submit([i.id for i in items], force_refresh=args.force)
            await engine.join()
        else:
            await engine.analyze_batch(items, force_refresh=args.force, verify_with_search=args.verify)
    finally:
        await engine.shutdown()

    states = Counter(i.state.value for i in engine.library.items())
    print("\nAnalysis complete:")
    print(f"  Files:      {len(items)}")
    print(f"  Succeeded:  {states.get('SUCCESS', 0)}")
    print(f"  Failed:     {states.get('ERROR', 0)}")
    print(f"  AI calls:   {engine.analyzer.calls_made}")
    for item in engine.library.items():
        if item.error_message:
            print(f"  ! {item.relative_path or item.display_name}: {item.error_message}")
    return 0 if not states.get("ERROR") else 3


async def _cmd_cache(args: argparse.Namespace, settings) -> int:
    """Clear, purge or inspect the AI cache."""
    from lumbago.cache.cache_factory import create_tag_cache

    cache = create_tag_cache(settings)
    if args.action == "clear":
        cache.clear()
        print("AI cache cleared.")
    elif args.action == "purge":
        if settings.cache_max_age_days <= 0:
            print("CACHE_MAX_AGE_DAYS is not set; nothing expires.")
        else:
            removed = cache.purge_expired()
            print(f"Purged {removed} expired entries.")
    else:
        print(f"\nCache ({settings.cache_backend}):")
        print(f"  Entries: {len(cache)}")
    return 0


async def _cmd_playlist(args: argparse.Namespace, settings) -> int:
    """Generate a playlist from the tags known for a directory."""
    from lumbago.api.facade import TaggingEngine

    directory: Path = args.directory
    if not directory.is_dir():
        logger.error("Not a directory: %s", directory)
        return 1

    engine = TaggingEngine.from_settings(settings)
    engine.add_directory(directory)
    playlist = await engine.smart_playlist(args.prompt)

    print(f"\n{playlist.name}")
    for n, item_id in enumerate(playlist.item_ids, start=1):
        item = engine.library.get(item_id)
        if item is not None:
            print(f"  {n:3d}. {item.relative_path or item.display_name}")
    return 0


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from lumbago.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())

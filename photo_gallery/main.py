"""Command line entry point.

`photo-gallery load FOLDER` materializes thumbnails for the images directly
inside FOLDER (no recursion) through the same loader and caches a UI would
use, printing progress as it goes. The other commands inspect or maintain the
durable thumbnail cache.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication

from photo_gallery.image_engine import (
    FileEntry,
    GalleryLoader,
    ThumbnailCache,
    TieredImageCache,
    filter_image_entries,
)
from photo_gallery.image_engine.metrics import metrics
from photo_gallery.logger import get_logger, setup_logger
from photo_gallery.path_utils import abs_dir
from photo_gallery.settings_manager import DEFAULT_SETTINGS_PATH, SettingsManager

logger = get_logger("main")


def list_folder(folder: Path) -> list[FileEntry]:
    """Flat listing of `folder`, sorted by name."""
    entries: list[FileEntry] = []
    for p in sorted(folder.iterdir(), key=lambda p: p.name.lower()):
        try:
            entries.append(FileEntry(path=str(p), is_directory=p.is_dir()))
        except OSError:
            continue
    return entries


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="photo-gallery", description="Photo gallery thumbnail cache")
    parser.add_argument("--log-level", help="Set log level (debug, info, warning, error)")
    parser.add_argument("--log-cats", help="Comma separated logger categories to show")
    parser.add_argument("--settings", type=Path, default=DEFAULT_SETTINGS_PATH, help="Settings JSON file")
    parser.add_argument("--cache-dir", type=Path, default=None, help="Override the thumbnail cache directory")
    sub = parser.add_subparsers(dest="command", required=True)

    load = sub.add_parser("load", help="Generate or load thumbnails for a folder")
    load.add_argument("folder", type=Path)
    load.add_argument("--pacing-ms", type=int, default=None, help="Delay between items")
    load.add_argument("--quiet", action="store_true", help="Only print the summary")

    sub.add_parser("stats", help="Show durable cache size")
    sub.add_parser("clear", help="Delete every cached thumbnail")
    sub.add_parser("purge", help="Delete cached thumbnails past their max age")
    return parser


def _apply_logging_options(args: argparse.Namespace) -> None:
    if args.log_level:
        os.environ["PHOTO_GALLERY_LOG_LEVEL"] = args.log_level
    if args.log_cats:
        os.environ["PHOTO_GALLERY_LOG_CATS"] = args.log_cats
    setup_logger()


def _log_load_metrics() -> None:
    rate = metrics.cache_hit_rate()
    if rate is not None:
        logger.info("cache hit rate: %.0f%%", rate * 100)
    gen = metrics.timing_summary("thumbnailer.load_duration")
    if gen is not None:
        logger.info("generated %d images in %.2fs (slowest %.2fs)", gen["count"], gen["total"], gen["max"])


def _cmd_load(args: argparse.Namespace, settings: SettingsManager, durable: ThumbnailCache) -> int:
    folder = abs_dir(args.folder)
    if not folder.is_dir():
        print(f"not a directory: {folder}", file=sys.stderr)
        return 2
    settings.set("last_open_dir", str(folder))

    images = filter_image_entries(list_folder(folder))
    pacing = settings.load_pacing_ms if args.pacing_ms is None else args.pacing_ms

    app = QCoreApplication.instance() or QCoreApplication([sys.argv[0]])
    loader = GalleryLoader(TieredImageCache(durable=durable), pacing_ms=pacing)
    if not args.quiet:
        loader.progress.connect(lambda done, total: print(f"\r{done}/{total}", end="", flush=True))
    loader.finished.connect(lambda _gen: app.quit())
    metrics.reset()
    loader.start(images)
    app.exec()

    if not args.quiet and images:
        print()
    print(f"loaded {loader.progress_count - loader.failed_count}/{loader.total}, failed {loader.failed_count}")
    for url in loader.errors:
        print(f"  failed: {url}")
    _log_load_metrics()
    return 1 if loader.failed_count else 0


def _cmd_stats(durable: ThumbnailCache) -> int:
    count = durable.count()
    size = durable.total_size()
    if not (count.ok and size.ok):
        print(f"thumbnail cache unavailable: {count.error or size.error}", file=sys.stderr)
        return 1
    limit_mb = durable.config.max_cache_bytes / (1024 * 1024)
    print(f"entries: {count.value}")
    print(f"estimated size: {size.value / (1024 * 1024):.2f} MB of {limit_mb:.0f} MB")
    return 0


def _cmd_clear(durable: ThumbnailCache) -> int:
    res = durable.clear()
    if not res.ok:
        print(f"clear failed: {res.error}", file=sys.stderr)
        return 1
    durable.vacuum()
    print("thumbnail cache cleared")
    return 0


def _cmd_purge(durable: ThumbnailCache) -> int:
    res = durable.purge_expired()
    if not res.ok:
        print(f"purge failed: {res.error}", file=sys.stderr)
        return 1
    print(f"removed {res.value} expired entries")
    return 0


def run(argv: list[str] | None = None) -> int:
    """Application entrypoint (packaging-friendly)."""
    args = build_parser().parse_args(argv)
    _apply_logging_options(args)

    settings = SettingsManager(args.settings)
    cache_dir = args.cache_dir.expanduser() if args.cache_dir else settings.cache_dir
    durable = ThumbnailCache.open(cache_dir, settings.cache_config())
    logger.debug("command=%s cache_dir=%s store_available=%s", args.command, cache_dir, durable.available)
    try:
        if args.command == "load":
            return _cmd_load(args, settings, durable)
        if args.command == "stats":
            return _cmd_stats(durable)
        if args.command == "clear":
            return _cmd_clear(durable)
        return _cmd_purge(durable)
    finally:
        durable.close()


if __name__ == "__main__":
    sys.exit(run())

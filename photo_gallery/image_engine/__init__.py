"""Image Engine - thumbnail materialization and caching.

This package provides the non-UI core of the gallery:
- Extension filtering (extensions)
- Decoding and thumbnail generation (decoder, thumbnailer)
- Caching (session_cache, thumbnail_cache, tiered_cache)
- Sequencing a folder load (loader)

Usage:
    from photo_gallery.image_engine import GalleryLoader, TieredImageCache, ThumbnailCache

    cache = TieredImageCache(durable=ThumbnailCache.open(cache_dir))
    loader = GalleryLoader(cache)
    loader.progress.connect(on_progress)
    loader.start(entries)
"""

from .config import CacheConfig
from .errors import DecodeError, EncodeError, StoreUnavailable
from .extensions import filter_image_entries, is_image_path
from .loader import GalleryLoader
from .models import CacheEntry, FileEntry, ImageSize, LoadedImage, SlotState
from .session_cache import SessionCache
from .thumbnail_cache import StoreResult, ThumbnailCache
from .tiered_cache import TieredImageCache

__all__ = [
    "CacheConfig",
    "CacheEntry",
    "DecodeError",
    "EncodeError",
    "FileEntry",
    "GalleryLoader",
    "ImageSize",
    "LoadedImage",
    "SessionCache",
    "SlotState",
    "StoreResult",
    "StoreUnavailable",
    "ThumbnailCache",
    "TieredImageCache",
    "filter_image_entries",
    "is_image_path",
]

from __future__ import annotations

from dataclasses import replace

from photo_gallery.logger import get_logger

from .metrics import metrics
from .models import LoadedImage
from .session_cache import SessionCache
from .thumbnail_cache import ThumbnailCache

_logger = get_logger("tiered_cache")

SOURCE_SESSION = "session"
SOURCE_DURABLE = "durable"


class TieredImageCache:
    """Session cache in front of the durable thumbnail store.

    Lookups consult the session layer first, so a URL present in both layers
    resolves to the session value. Durable hits are adopted into the session
    layer. Durable-layer failures behave as misses.
    """

    def __init__(self, session: SessionCache | None = None, durable: ThumbnailCache | None = None) -> None:
        self.session = session if session is not None else SessionCache()
        self.durable = durable

    def lookup(self, url: str) -> tuple[LoadedImage, str] | None:
        image = self.session.get(url)
        if image is not None:
            metrics.inc("cache.session_hit")
            return image, SOURCE_SESSION

        if self.durable is None:
            metrics.inc("cache.miss")
            return None
        res = self.durable.get(url)
        if not res.ok or res.value is None:
            metrics.inc("cache.miss")
            return None
        image = res.value.to_loaded_image()
        self.session.set(url, image)
        metrics.inc("cache.durable_hit")
        return image, SOURCE_DURABLE

    def store(self, image: LoadedImage) -> LoadedImage:
        """Write a freshly generated image into both layers.

        The session layer keeps thumbnails only; the decoded source raster is
        dropped and `open_original()` decodes it again on demand. Returns the
        image as kept.
        """
        if image.original is not None:
            image = replace(image, original=None)
        self.session.set(image.url, image)
        if self.durable is not None:
            res = self.durable.set(image.url, image)
            if not res.ok:
                _logger.debug("durable write skipped for %s: %s", image.url, res.error)
        return image

    def clear(self) -> None:
        self.session.clear()
        if self.durable is not None:
            self.durable.clear()

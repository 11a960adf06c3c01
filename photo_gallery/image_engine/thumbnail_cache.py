"""ThumbnailCache: the durable layer of the thumbnail cache.

Records are keyed by source URL and stored through a `StorageBackend`
(SQLite in the application, in-memory in tests). The service adds the
cache policy on top of the raw store:

- entries older than `CacheConfig.max_age_ms` are deleted when read and
  reported as a miss;
- after every successful write the estimated total size is checked, and if
  it exceeds `CacheConfig.max_cache_bytes` the oldest entries (by write
  time) are removed until `eviction_fraction` of the capacity is freed;
- any storage failure is logged and returned as a failed `StoreResult`.
  Nothing raised by the backend escapes to callers, which keep working
  with the session cache alone.

Entries are never touched on read, so an old entry that is read often is
still among the first to be evicted.
"""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Callable
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

from photo_gallery.logger import get_logger

from .config import CacheConfig
from .db.backends import SqliteBackend, StorageBackend
from .errors import StoreUnavailable
from .metrics import metrics
from .models import CacheEntry, LoadedImage, has_all_tiers

_logger = get_logger("thumbnail_cache")

T = TypeVar("T")

# Failures that mean "the store is unusable right now". ValueError/TypeError
# come from rows that no longer convert, i.e. a corrupted store.
_STORE_ERRORS = (sqlite3.Error, OSError, StoreUnavailable, FutureTimeoutError, ValueError, TypeError)


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of one durable-store request.

    `error` is None on success. A successful lookup that found nothing has
    `value is None`.
    """

    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def now_ms() -> int:
    return int(time.time() * 1000)


def estimate_size(thumbnails: dict[str, str], factor: float = 0.75) -> int:
    """Approximate binary size of text-encoded payloads."""
    return int(sum(len(payload) * factor for payload in thumbnails.values()))


class ThumbnailCache:
    """Durable, TTL- and capacity-bounded thumbnail store."""

    def __init__(
        self,
        backend: StorageBackend | None,
        config: CacheConfig | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._backend = backend
        self.config = config or CacheConfig()
        self._clock = clock

    @classmethod
    def open(
        cls, cache_dir: Path | str, config: CacheConfig | None = None, clock: Callable[[], int] = now_ms
    ) -> ThumbnailCache:
        """Open the SQLite store under `cache_dir`.

        If it cannot be opened the returned cache is unavailable: every call
        reports a failure and the application runs on the session cache.
        """
        config = config or CacheConfig()
        db_path = Path(cache_dir) / config.db_name
        backend: StorageBackend | None
        try:
            backend = SqliteBackend(db_path)
        except _STORE_ERRORS as exc:
            _logger.warning("thumbnail store unavailable (%s): %s", db_path, exc)
            metrics.inc("store.open_failed")
            backend = None
        return cls(backend, config=config, clock=clock)

    @property
    def available(self) -> bool:
        return self._backend is not None

    def _call(self, op: str, fn: Callable[[StorageBackend], Any]) -> StoreResult[Any]:
        if self._backend is None:
            return StoreResult(error="thumbnail store unavailable")
        try:
            return StoreResult(value=fn(self._backend))
        except _STORE_ERRORS as exc:
            _logger.warning("thumbnail store %s failed: %s", op, exc)
            metrics.inc("store.errors")
            return StoreResult(error=f"{type(exc).__name__}: {exc}")

    def get(self, url: str) -> StoreResult[CacheEntry]:
        res = self._call("get", lambda b: b.fetch(url))
        if not res.ok or res.value is None:
            return res
        entry: CacheEntry = res.value
        if self._clock() - entry.timestamp > self.config.max_age_ms:
            _logger.debug("expired cache entry dropped: %s", url)
            metrics.inc("store.expired")
            self._call("delete", lambda b: b.delete(url))
            return StoreResult(value=None)
        return res

    def set(self, url: str, image: LoadedImage) -> StoreResult[None]:
        """Write (or wholly replace) the record for `url`, then enforce capacity."""
        if not has_all_tiers(image.thumbnails):
            _logger.warning("refusing to store incomplete thumbnails for %s", url)
            return StoreResult(error="incomplete thumbnails")
        entry = CacheEntry(
            url=url,
            thumbnails=dict(image.thumbnails),
            aspect_ratio=image.aspect_ratio,
            size=image.size,
            timestamp=self._clock(),
            estimated_size=estimate_size(image.thumbnails, self.config.size_factor),
        )
        res = self._call("set", lambda b: b.put(entry))
        if res.ok:
            metrics.inc("store.writes")
            self._enforce_capacity()
        return StoreResult(error=res.error)

    def delete(self, url: str) -> StoreResult[None]:
        return self._call("delete", lambda b: b.delete(url))

    def clear(self) -> StoreResult[None]:
        return self._call("clear", lambda b: b.clear())

    def total_size(self) -> StoreResult[int]:
        return self._call("total_size", lambda b: b.total_size())

    def count(self) -> StoreResult[int]:
        return self._call("count", lambda b: b.count())

    def _enforce_capacity(self) -> None:
        total = self.total_size()
        if total.ok and total.value is not None and total.value > self.config.max_cache_bytes:
            self.evict()

    def evict(self) -> StoreResult[int]:
        """Delete the oldest entries until `eviction_target_bytes` are freed."""
        picked = self._call("evict", lambda b: b.select_oldest(self.config.eviction_target_bytes))
        if not picked.ok:
            return StoreResult(error=picked.error)
        candidates: list[tuple[str, int]] = picked.value or []
        urls = [url for url, _size in candidates]
        res = self._call("evict", lambda b: b.delete_many(urls))
        if res.ok:
            freed = sum(size for _url, size in candidates)
            metrics.inc("store.evicted", len(urls))
            _logger.info("cleaned up %d cache entries (%d bytes)", len(urls), freed)
        return res

    def purge_expired(self) -> StoreResult[int]:
        """Sweep every entry past its max age; returns the number removed."""
        cutoff = self._clock() - self.config.max_age_ms
        res = self._call("purge", lambda b: b.delete_older_than(cutoff))
        if res.ok:
            _logger.debug("purged %d expired thumbnails", res.value)
        return res

    def vacuum(self) -> StoreResult[None]:
        return self._call("vacuum", lambda b: b.vacuum())

    def close(self) -> None:
        if self._backend is not None:
            self._backend.close()
            self._backend = None

"""Storage backends for the durable thumbnail store.

`ThumbnailCache` talks to storage only through `StorageBackend`, so tests can
swap the SQLite file for an in-memory or fault-injecting implementation.
Backends raise on failure; turning failures into cache misses is the
service's job.
"""

from __future__ import annotations

import contextlib
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from pathlib import Path

from photo_gallery.logger import get_logger

from ..config import TIER_LARGE, TIER_MEDIUM, TIER_SMALL
from ..models import CacheEntry, ImageSize
from .db_operator import DbOperator
from .migrations import apply_migrations

_logger = get_logger("store_backend")

_COLUMNS = (
    "url, thumb_small, thumb_medium, thumb_large, aspect_ratio, width, height, timestamp, estimated_size"
)


def collect_oldest(rows: Iterable[tuple[str, int]], target_bytes: float) -> list[tuple[str, int]]:
    """Take (url, size) rows, oldest first, until their sizes reach `target_bytes`."""
    picked: list[tuple[str, int]] = []
    freed = 0
    for url, size in rows:
        if freed >= target_bytes:
            break
        picked.append((url, size))
        freed += int(size or 0)
    return picked


class StorageBackend(ABC):
    """Keyed record store with a secondary ordering on write time."""

    @abstractmethod
    def fetch(self, url: str) -> CacheEntry | None:
        raise NotImplementedError()

    @abstractmethod
    def put(self, entry: CacheEntry) -> None:
        """Insert or wholly replace the record for `entry.url`."""
        raise NotImplementedError()

    @abstractmethod
    def delete(self, url: str) -> None:
        raise NotImplementedError()

    @abstractmethod
    def delete_many(self, urls: Sequence[str]) -> int:
        """Delete all `urls` in one transaction; return the number removed."""
        raise NotImplementedError()

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError()

    @abstractmethod
    def total_size(self) -> int:
        raise NotImplementedError()

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError()

    @abstractmethod
    def select_oldest(self, target_bytes: float) -> list[tuple[str, int]]:
        """Oldest-first (url, estimated_size) rows whose sizes add up to `target_bytes`."""
        raise NotImplementedError()

    @abstractmethod
    def delete_older_than(self, cutoff_ms: int) -> int:
        raise NotImplementedError()

    def vacuum(self) -> None:  # noqa: B027
        """Reclaim unused space, where the backend has any."""

    def close(self) -> None:  # noqa: B027
        """Release resources."""


class MemoryBackend(StorageBackend):
    """Dict-backed store living for the lifetime of the object."""

    def __init__(self) -> None:
        self._rows: dict[str, CacheEntry] = {}

    def _by_timestamp(self) -> list[CacheEntry]:
        return sorted(self._rows.values(), key=lambda e: e.timestamp)

    def fetch(self, url: str) -> CacheEntry | None:
        return self._rows.get(url)

    def put(self, entry: CacheEntry) -> None:
        self._rows[entry.url] = entry

    def delete(self, url: str) -> None:
        self._rows.pop(url, None)

    def delete_many(self, urls: Sequence[str]) -> int:
        removed = 0
        for url in urls:
            if self._rows.pop(url, None) is not None:
                removed += 1
        return removed

    def clear(self) -> None:
        self._rows.clear()

    def total_size(self) -> int:
        return sum(e.estimated_size for e in self._rows.values())

    def count(self) -> int:
        return len(self._rows)

    def select_oldest(self, target_bytes: float) -> list[tuple[str, int]]:
        return collect_oldest(((e.url, e.estimated_size) for e in self._by_timestamp()), target_bytes)

    def delete_older_than(self, cutoff_ms: int) -> int:
        stale = [e.url for e in self._rows.values() if e.timestamp < cutoff_ms]
        return self.delete_many(stale)


def _row_to_entry(row: Sequence[object]) -> CacheEntry:
    url, small, medium, large, aspect, width, height, ts, est = row
    return CacheEntry(
        url=str(url),
        thumbnails={TIER_SMALL: str(small), TIER_MEDIUM: str(medium), TIER_LARGE: str(large)},
        aspect_ratio=float(aspect),
        size=ImageSize(int(width), int(height)),
        timestamp=int(ts),
        estimated_size=int(est),
    )


class SqliteBackend(StorageBackend):
    """SQLite file accessed through a `DbOperator` worker.

    Every call blocks on the operator's future, so from the caller's side the
    backend behaves like a synchronous request/response store.
    """

    def __init__(self, db_path: Path | str, operator: DbOperator | None = None, timeout: float = 10.0):
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._operator_owned = operator is None
        self._operator = operator if operator is not None else DbOperator(self._db_path)
        try:
            self._operator.schedule_write(apply_migrations).result(timeout=self._timeout)
        except Exception:
            self.close()
            raise
        _logger.debug("thumbnail store opened: %s", self._db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _read(self, fn, *args):
        return self._operator.schedule_read(fn, *args).result(timeout=self._timeout)

    def _write(self, fn, *args):
        return self._operator.schedule_write(fn, *args).result(timeout=self._timeout)

    def fetch(self, url: str) -> CacheEntry | None:
        def _do(conn, url):
            return conn.execute(f"SELECT {_COLUMNS} FROM thumbnails WHERE url = ?", (url,)).fetchone()

        row = self._read(_do, url)
        return _row_to_entry(row) if row else None

    def put(self, entry: CacheEntry) -> None:
        def _do(conn, e: CacheEntry):
            conn.execute(
                f"INSERT OR REPLACE INTO thumbnails ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    e.url,
                    e.thumbnails[TIER_SMALL],
                    e.thumbnails[TIER_MEDIUM],
                    e.thumbnails[TIER_LARGE],
                    float(e.aspect_ratio),
                    int(e.size.width),
                    int(e.size.height),
                    int(e.timestamp),
                    int(e.estimated_size),
                ),
            )

        self._write(_do, entry)

    def delete(self, url: str) -> None:
        def _do(conn, url):
            conn.execute("DELETE FROM thumbnails WHERE url = ?", (url,))

        self._write(_do, url)

    def delete_many(self, urls: Sequence[str]) -> int:
        if not urls:
            return 0

        def _do(conn, urls):
            cur = conn.executemany("DELETE FROM thumbnails WHERE url = ?", [(u,) for u in urls])
            return cur.rowcount

        return int(self._write(_do, list(urls)))

    def clear(self) -> None:
        self._write(lambda conn: conn.execute("DELETE FROM thumbnails"))

    def total_size(self) -> int:
        def _do(conn):
            row = conn.execute("SELECT COALESCE(SUM(estimated_size), 0) FROM thumbnails").fetchone()
            return int(row[0]) if row else 0

        return self._read(_do)

    def count(self) -> int:
        def _do(conn):
            row = conn.execute("SELECT COUNT(*) FROM thumbnails").fetchone()
            return int(row[0]) if row else 0

        return self._read(_do)

    def select_oldest(self, target_bytes: float) -> list[tuple[str, int]]:
        def _do(conn, target):
            cur = conn.execute("SELECT url, estimated_size FROM thumbnails ORDER BY timestamp ASC")
            try:
                return collect_oldest(((str(u), int(s)) for u, s in cur), target)
            finally:
                cur.close()

        return self._read(_do, target_bytes)

    def delete_older_than(self, cutoff_ms: int) -> int:
        def _do(conn, cutoff):
            return conn.execute("DELETE FROM thumbnails WHERE timestamp < ?", (int(cutoff),)).rowcount

        return int(self._write(_do, cutoff_ms))

    def vacuum(self) -> None:
        def _do(conn):
            # VACUUM cannot run inside a transaction.
            conn.commit()
            conn.execute("VACUUM")

        self._write(_do)

    def close(self) -> None:
        if self._operator_owned:
            with contextlib.suppress(Exception):
                self._operator.shutdown(wait=True)

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from ..metrics import metrics

# Migration function signature: (conn: sqlite3.Connection) -> None
MigrationFn = Callable[[sqlite3.Connection], None]


def _upgrade_to_1(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS thumbnails (
            url TEXT PRIMARY KEY,
            thumb_small TEXT NOT NULL,
            thumb_medium TEXT NOT NULL,
            thumb_large TEXT NOT NULL,
            aspect_ratio REAL NOT NULL,
            width INTEGER NOT NULL,
            height INTEGER NOT NULL,
            timestamp INTEGER NOT NULL,
            estimated_size INTEGER NOT NULL
        )
    """)
    # Eviction scans rows oldest-first through this index.
    conn.execute("CREATE INDEX IF NOT EXISTS idx_thumbnails_timestamp ON thumbnails(timestamp)")
    conn.execute("PRAGMA user_version = 1")


MIGRATIONS_UPGRADE: dict[int, MigrationFn] = {1: _upgrade_to_1}


def get_latest_version() -> int:
    return max(MIGRATIONS_UPGRADE.keys()) if MIGRATIONS_UPGRADE else 0


def get_user_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row else 0


def apply_migrations(conn: sqlite3.Connection) -> None:
    """Bring the DB to the latest user_version.

    A database written by a newer version of the application is left alone
    and reported as an error; the caller then runs without a durable store.
    """
    current = get_user_version(conn)
    latest = get_latest_version()

    if current == latest:
        return
    if current > latest:
        raise sqlite3.DatabaseError(f"thumbnail DB schema v{current} is newer than supported v{latest}")

    for v in range(current + 1, latest + 1):
        fn = MIGRATIONS_UPGRADE.get(v)
        if fn:
            with metrics.timed(f"migrations.apply_v{v}_duration"):
                fn(conn)
            metrics.inc(f"migrations.applied_v{v}")
    conn.commit()

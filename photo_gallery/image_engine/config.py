from __future__ import annotations

from dataclasses import dataclass

TIER_SMALL = "small"
TIER_MEDIUM = "medium"
TIER_LARGE = "large"
TIERS: tuple[str, ...] = (TIER_SMALL, TIER_MEDIUM, TIER_LARGE)


@dataclass(frozen=True)
class TierSpec:
    name: str
    width: int
    height: int
    quality: float


TIER_SPECS: tuple[TierSpec, ...] = (
    TierSpec(TIER_SMALL, 150, 150, 0.7),
    TierSpec(TIER_MEDIUM, 300, 300, 0.8),
    TierSpec(TIER_LARGE, 600, 600, 0.9),
)

DAY_MS = 24 * 60 * 60 * 1000
MIB = 1024 * 1024

DEFAULT_DB_NAME = "photo_gallery_thumbs.db"
SCHEMA_VERSION = 1


@dataclass(frozen=True)
class CacheConfig:
    """Limits and constants of the durable thumbnail store.

    Attributes
    ----------
    max_age_ms:
        Entries older than this (by write time) are treated as absent.
    max_cache_bytes:
        Capacity; a write that pushes the estimated total above this runs
        eviction.
    eviction_fraction:
        Share of `max_cache_bytes` freed by one eviction pass.
    size_factor:
        Ratio applied to encoded payload lengths to approximate binary size
        (base64 carries 3 bytes in 4 characters).
    db_name:
        SQLite file name inside the cache directory.
    """

    max_age_ms: int = 7 * DAY_MS
    max_cache_bytes: int = 100 * MIB
    eviction_fraction: float = 0.3
    size_factor: float = 0.75
    db_name: str = DEFAULT_DB_NAME

    @property
    def eviction_target_bytes(self) -> float:
        return self.max_cache_bytes * self.eviction_fraction

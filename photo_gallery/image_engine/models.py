"""Value types shared by the thumbnail generator, caches and loader."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from .config import TIERS
from .decoder import decode_url


@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height


@dataclass(frozen=True)
class FileEntry:
    """One item from directory enumeration."""

    path: str
    is_directory: bool = False


class SlotState(enum.Enum):
    PENDING = "pending"
    FAILED = "failed"


def has_all_tiers(thumbnails: dict[str, str]) -> bool:
    """True when `thumbnails` holds exactly the small/medium/large payloads."""
    return set(thumbnails) == set(TIERS) and all(thumbnails[t] for t in TIERS)


@dataclass
class LoadedImage:
    """In-memory materialized form of one source image.

    `original` is the full-resolution decoded image. Neither cache layer keeps
    it: images served from the session or durable layer carry `None` here and
    re-derive it on demand through `open_original()`.
    """

    url: str
    thumbnails: dict[str, str]
    size: ImageSize
    original: Any | None = field(default=None, repr=False, compare=False)

    @property
    def aspect_ratio(self) -> float:
        return self.size.aspect_ratio

    def open_original(self) -> Any:
        if self.original is None:
            self.original = decode_url(self.url)
        return self.original


@dataclass(frozen=True)
class CacheEntry:
    """Durable record for one URL; the persisted projection of a LoadedImage."""

    url: str
    thumbnails: dict[str, str]
    aspect_ratio: float
    size: ImageSize
    timestamp: int  # epoch millis of the write
    estimated_size: int

    def to_loaded_image(self) -> LoadedImage:
        return LoadedImage(url=self.url, thumbnails=dict(self.thumbnails), size=self.size)

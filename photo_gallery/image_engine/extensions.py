from __future__ import annotations

from collections.abc import Iterable

from .models import FileEntry

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "gif", "bmp", "tiff", "svg", "ico", "heic"})


def is_image_path(name: str) -> bool:
    """True iff the lowercased text after the final '.' is a known image extension."""
    _head, dot, ext = name.rpartition(".")
    if not dot:
        return False
    return ext.lower() in IMAGE_EXTENSIONS


def filter_image_entries(entries: Iterable[FileEntry]) -> list[FileEntry]:
    """Keep non-directory entries with an image extension, in input order."""
    return [e for e in entries if not e.is_directory and is_image_path(e.path)]

"""Source image decoding using pyvips.

Images are decoded fully into memory up front so that truncated or corrupt
files fail here, with a `DecodeError`, rather than later while a thumbnail
is being encoded.
"""

from __future__ import annotations

import contextlib
from typing import Any

from photo_gallery.logger import get_logger
from photo_gallery.path_utils import local_path_for_url

from .errors import DecodeError

_logger = get_logger("decoder")

_pyvips: Any | None = None


def get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # The pyvips operation cache only grows across a large folder.
        pyvips.cache_set_max(0)
        _pyvips = pyvips
    return _pyvips


def decode_file(path: str) -> Any:
    """Decode `path` into an in-memory sRGB pyvips image.

    Raises DecodeError on any failure.
    """
    pyvips = get_pyvips_module()
    try:
        image = pyvips.Image.new_from_file(path, access="sequential")
        image = image.copy_memory()
        if image.interpretation not in ("srgb", "b-w"):
            with contextlib.suppress(pyvips.Error):
                image = image.colourspace("srgb")
    except (pyvips.Error, OSError) as exc:
        _logger.debug("decode failed: %s: %s", path, exc)
        lines = str(exc).strip().splitlines()
        raise DecodeError(path, lines[0] if lines else type(exc).__name__) from exc
    if image.width <= 0 or image.height <= 0:
        raise DecodeError(path, "empty image")
    return image


def decode_url(url: str) -> Any:
    """Decode the image behind a resolved source URL."""
    try:
        path = local_path_for_url(url)
    except ValueError as exc:
        raise DecodeError(url, str(exc)) from exc
    try:
        return decode_file(path)
    except DecodeError as exc:
        raise DecodeError(url, exc.reason) from exc

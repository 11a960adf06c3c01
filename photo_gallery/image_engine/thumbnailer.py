"""Thumbnail generation.

Every source image yields three renditions (small/medium/large). Each one is
scaled so that it covers its target box while keeping the source aspect ratio
exactly: landscape sources are fitted by height, portrait and square sources
by width. Nothing is cropped or padded.

Renditions are encoded as WebP when libvips was built with a WebP saver and
as JPEG otherwise. The format is probed once per process. A rendition too
large for WebP (over 16383 px on a side) is written as JPEG instead. Payloads
are returned as base64 `data:` URIs so they can be embedded and stored
without any external reference.
"""

from __future__ import annotations

import base64
import contextlib
from typing import Any

from photo_gallery.logger import get_logger

from .config import TIER_SPECS, TierSpec
from .decoder import decode_url, get_pyvips_module
from .errors import EncodeError
from .metrics import metrics
from .models import ImageSize, LoadedImage

_logger = get_logger("thumbnailer")

_FORMATS: dict[str, tuple[str, str]] = {
    "webp": (".webp", "image/webp"),
    "jpeg": (".jpg", "image/jpeg"),
}

# Largest width or height each saver accepts.
_MAX_DIMENSION = {"webp": 16383, "jpeg": 65535}

_thumb_format: str | None = None


def thumbnail_format() -> str:
    """Return the encoding used for thumbnails in this process ("webp" or "jpeg")."""
    global _thumb_format
    if _thumb_format is None:
        pyvips = get_pyvips_module()
        fmt = "jpeg"
        with contextlib.suppress(pyvips.Error, AttributeError):
            if pyvips.type_find("VipsOperation", "webpsave_buffer") != 0:
                fmt = "webp"
        _thumb_format = fmt
        _logger.debug("thumbnail format: %s", fmt)
    return _thumb_format


def fit_dimensions(src_width: int, src_height: int, box_width: int, box_height: int) -> tuple[int, int]:
    """Compute the output size for one rendition.

    Landscape sources (aspect > 1) take the box height, everything else takes
    the box width; the other side follows from the source aspect ratio.
    """
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"invalid source size {src_width}x{src_height}")
    aspect = src_width / src_height
    if aspect > 1:
        out_h = float(box_height)
        out_w = out_h * aspect
    else:
        out_w = float(box_width)
        out_h = out_w / aspect
    return max(1, round(out_w)), max(1, round(out_h))


def rendition_format(width: int, height: int) -> str:
    """Format for one rendition: the process format, or JPEG when WebP cannot hold the size."""
    fmt = thumbnail_format()
    if max(width, height) > _MAX_DIMENSION[fmt]:
        fmt = "jpeg"
    if max(width, height) > _MAX_DIMENSION[fmt]:
        raise EncodeError("<image>", f"rendition {width}x{height} exceeds the encoder size limit")
    return fmt


def _to_data_uri(payload: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"


def generate_thumbnail(image: Any, box: tuple[int, int], quality: float) -> str:
    """Resize a decoded pyvips image into `box` and return it as a data URI."""
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")
    out_w, out_h = fit_dimensions(image.width, image.height, box[0], box[1])
    fmt = rendition_format(out_w, out_h)
    suffix, mime = _FORMATS[fmt]

    pyvips = get_pyvips_module()
    try:
        thumb = image.thumbnail_image(out_w, height=out_h, size="force")
        if fmt == "jpeg" and thumb.hasalpha():
            thumb = thumb.flatten(background=[255, 255, 255])
        payload = thumb.write_to_buffer(suffix, Q=round(quality * 100))
    except pyvips.Error as exc:
        raise EncodeError("<image>", str(exc).strip()) from exc
    return _to_data_uri(payload, mime)


def generate_tiers(image: Any, specs: tuple[TierSpec, ...] = TIER_SPECS) -> dict[str, str]:
    """Produce every tier for `image`; either all of them or an exception."""
    thumbnails: dict[str, str] = {}
    for spec in specs:
        thumbnails[spec.name] = generate_thumbnail(image, (spec.width, spec.height), spec.quality)
    return thumbnails


def load_image(url: str) -> LoadedImage:
    """Decode the source at `url` and materialize all thumbnail tiers.

    Raises DecodeError if the source cannot be decoded and EncodeError (a
    DecodeError) if a rendition cannot be encoded. The returned image still
    holds the decoded source; caches keep only the thumbnails.
    """
    with metrics.timed("thumbnailer.load_duration"):
        original = decode_url(url)
        try:
            thumbnails = generate_tiers(original)
        except EncodeError as exc:
            raise EncodeError(url, exc.reason) from exc
    metrics.inc("thumbnailer.generated")
    _logger.debug("thumbnails generated: url=%s size=%dx%d", url, original.width, original.height)
    return LoadedImage(
        url=url,
        thumbnails=thumbnails,
        size=ImageSize(int(original.width), int(original.height)),
        original=original,
    )

"""Error types raised by the image engine.

Cache misses and expired entries are not errors and never appear here.
"""

from __future__ import annotations


class DecodeError(Exception):
    """The source image could not be read or decoded.

    Raised per item; a loader run records it and moves on.
    """

    _prefix = "cannot decode"

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{self._prefix} {url}: {reason}")
        self.url = url
        self.reason = reason


class EncodeError(DecodeError):
    """The source decoded but a thumbnail rendition could not be encoded."""

    _prefix = "cannot encode thumbnail for"


class StoreUnavailable(Exception):
    """The durable thumbnail store cannot be opened, read or written.

    Quota and disk-full failures are reported as this as well.
    """

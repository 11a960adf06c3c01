"""Pytest configuration.

The loader is a QObject driven by Qt timers, so a single Qt application is
created for the whole session (offscreen, no display needed) and shut down
cleanly at the end.

Shared fixtures build small synthetic images with numpy + pyvips and fake
clocks/backends for the durable cache.
"""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Any

import pytest

from photo_gallery.image_engine.config import TIERS
from photo_gallery.image_engine.db.backends import MemoryBackend
from photo_gallery.image_engine.models import ImageSize, LoadedImage

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

_APP: Any | None = None


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QApplication exists before collecting/running tests."""
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    global _APP

    app = QApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        return

    app = QApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()


class FakeClock:
    """Epoch-millis clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FailingBackend(MemoryBackend):
    """Backend whose every operation fails like a broken SQLite file."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise sqlite3.OperationalError("disk I/O error")

    fetch = put = delete = delete_many = clear = total_size = count = select_oldest = delete_older_than = _fail


def make_loaded_image(url: str, payload_len: int = 100, width: int = 40, height: int = 30) -> LoadedImage:
    thumbnails = {tier: f"data:image/webp;base64,{tier[0] * payload_len}" for tier in TIERS}
    return LoadedImage(url=url, thumbnails=thumbnails, size=ImageSize(width, height))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_image(tmp_path: Path):
    """Factory writing a small two-tone image; the suffix of `name` picks the format."""
    import numpy as np
    import pyvips

    def _make(name: str = "img.png", width: int = 64, height: int = 48, bands: int = 3) -> Path:
        arr = np.zeros((height, width, bands), dtype=np.uint8)
        arr[..., 0] = 200
        arr[: height // 2, : width // 2, 1] = 180
        if bands == 4:
            arr[..., 3] = 128
        image = pyvips.Image.new_from_memory(arr.tobytes(), width, height, bands, "uchar")
        path = tmp_path / name
        image.write_to_file(str(path))
        return path

    return _make

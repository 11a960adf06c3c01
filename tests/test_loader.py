from __future__ import annotations

from pathlib import Path

import pytest
from conftest import FailingBackend, make_loaded_image

from photo_gallery.image_engine.db.backends import MemoryBackend
from photo_gallery.image_engine.errors import DecodeError
from photo_gallery.image_engine.loader import GalleryLoader
from photo_gallery.image_engine.models import FileEntry, LoadedImage, SlotState
from photo_gallery.image_engine.thumbnail_cache import ThumbnailCache
from photo_gallery.image_engine.tiered_cache import TieredImageCache


class FakeGenerator:
    """Stands in for decode + resize; fails for any URL containing 'bad'."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def __call__(self, url: str) -> LoadedImage:
        self.calls.append(url)
        if "bad" in url:
            raise DecodeError(url, "corrupt")
        return make_loaded_image(url)


def _resolve(path: str) -> str:
    return f"file://{path}"


def _loader(cache: TieredImageCache | None = None, gen: FakeGenerator | None = None, pacing_ms: int = 0):
    gen = gen or FakeGenerator()
    loader = GalleryLoader(cache or TieredImageCache(), resolve=_resolve, generate=gen, pacing_ms=pacing_ms)
    return loader, gen


ENTRIES = [FileEntry("/p/a.jpg"), FileEntry("/p/bad.jpg"), FileEntry("/p/c.png")]


def test_run_keeps_slots_aligned_under_partial_failure() -> None:
    loader, _ = _loader()

    results = loader.run(ENTRIES)

    assert isinstance(results[0], LoadedImage)
    assert results[1] is SlotState.FAILED
    assert isinstance(results[2], LoadedImage)
    assert results[0].url == "file:///p/a.jpg"
    assert results[2].url == "file:///p/c.png"
    assert loader.errors == ["file:///p/bad.jpg"]
    assert loader.progress_count == 3
    assert loader.failed_count == 1
    assert not loader.is_loading


def test_start_processes_on_event_loop(qtbot) -> None:
    loader, _ = _loader(pacing_ms=1)
    progress: list[tuple[int, int]] = []
    loaded: list[int] = []
    failed: list[tuple[int, str]] = []
    loader.progress.connect(lambda done, total: progress.append((done, total)))
    loader.item_loaded.connect(lambda index, _image: loaded.append(index))
    loader.item_failed.connect(lambda index, url: failed.append((index, url)))

    with qtbot.waitSignal(loader.finished, timeout=5000) as blocker:
        gen = loader.start(ENTRIES)
        assert loader.results == [SlotState.PENDING] * 3
        assert loader.is_loading

    assert blocker.args == [gen]
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert loaded == [0, 2]
    assert failed == [(1, "file:///p/bad.jpg")]
    assert loader.results[1] is SlotState.FAILED
    assert not loader.is_loading


def test_start_and_run_agree(qtbot) -> None:
    async_loader, _ = _loader()
    with qtbot.waitSignal(async_loader.finished, timeout=5000):
        async_loader.start(ENTRIES)

    sync_loader, _ = _loader()
    sync_loader.run(ENTRIES)

    assert async_loader.results == sync_loader.results
    assert async_loader.errors == sync_loader.errors


def test_plain_path_strings_are_accepted() -> None:
    loader, _ = _loader()
    results = loader.run(["/p/x.png"])
    assert results[0].url == "file:///p/x.png"


def test_empty_run_finishes(qtbot) -> None:
    loader, _ = _loader()
    with qtbot.waitSignal(loader.finished, timeout=2000):
        loader.start([])
    assert loader.results == []
    assert loader.progress_count == 0


def test_second_pass_is_served_from_session() -> None:
    loader, gen = _loader()
    loader.run(ENTRIES)
    gen.calls.clear()

    loader.run(ENTRIES)

    # Only the failed item is retried.
    assert gen.calls == ["file:///p/bad.jpg"]


def test_durable_cache_avoids_regeneration_across_sessions(clock) -> None:
    backend = MemoryBackend()
    first, gen1 = _loader(TieredImageCache(durable=ThumbnailCache(backend, clock=clock)))
    first.run(ENTRIES)
    assert backend.count() == 2

    # New session layer, same durable store.
    second, gen2 = _loader(TieredImageCache(durable=ThumbnailCache(backend, clock=clock)))
    results = second.run(ENTRIES)

    assert gen2.calls == ["file:///p/bad.jpg"]
    assert isinstance(results[0], LoadedImage)
    assert results[0].original is None


def test_store_failures_do_not_change_the_outcome(clock) -> None:
    loader, _ = _loader(TieredImageCache(durable=ThumbnailCache(FailingBackend(), clock=clock)))
    results = loader.run(ENTRIES)
    assert [isinstance(r, LoadedImage) for r in results] == [True, False, True]
    assert loader.errors == ["file:///p/bad.jpg"]


def test_unexpected_generator_errors_are_per_item() -> None:
    def explode(url: str) -> LoadedImage:
        if url.endswith("a.jpg"):
            raise RuntimeError("libvips crashed")
        return make_loaded_image(url)

    loader = GalleryLoader(TieredImageCache(), resolve=_resolve, generate=explode, pacing_ms=0)
    results = loader.run([FileEntry("/p/a.jpg"), FileEntry("/p/b.jpg")])

    assert results[0] is SlotState.FAILED
    assert isinstance(results[1], LoadedImage)


def test_restart_discards_previous_run(qtbot) -> None:
    loader, gen = _loader(pacing_ms=1)
    finished: list[int] = []
    loader.finished.connect(finished.append)

    first = loader.start(ENTRIES)
    second_entries = [FileEntry("/q/one.png"), FileEntry("/q/two.png")]
    with qtbot.waitSignal(loader.finished, timeout=5000):
        second = loader.start(second_entries)

    assert second == first + 1
    assert finished == [second]
    assert [r.url for r in loader.results] == ["file:///q/one.png", "file:///q/two.png"]
    assert all(not c.startswith("file:///p/") for c in gen.calls)


def test_stale_step_does_not_write() -> None:
    loader: GalleryLoader

    def cancel_midway(url: str) -> LoadedImage:
        loader.cancel()
        return make_loaded_image(url)

    loader = GalleryLoader(TieredImageCache(), resolve=_resolve, generate=cancel_midway, pacing_ms=0)
    results = loader.run(ENTRIES[:2])

    assert results == [SlotState.PENDING, SlotState.PENDING]
    assert loader.progress_count == 0
    assert not loader.is_loading


def test_cancel_stops_scheduled_steps(qtbot) -> None:
    loader, gen = _loader(pacing_ms=50)
    finished: list[int] = []
    loader.finished.connect(finished.append)
    loader.item_loaded.connect(lambda _i, _img: loader.cancel())

    loader.start(ENTRIES)
    qtbot.waitUntil(lambda: loader.progress_count == 1, timeout=2000)
    qtbot.wait(200)

    assert gen.calls == ["file:///p/a.jpg"]
    assert finished == []
    assert not loader.is_loading


def test_loader_with_real_images(qtbot, make_image, tmp_path: Path, clock) -> None:
    pytest.importorskip("pyvips")
    good = make_image("good.png", width=120, height=80)
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"not an image")
    other = make_image("other.jpg", width=40, height=90)

    durable = ThumbnailCache.open(tmp_path / "cache", clock=clock)
    cache = TieredImageCache(durable=durable)
    loader = GalleryLoader(cache, pacing_ms=0)
    try:
        with qtbot.waitSignal(loader.finished, timeout=20000):
            loader.start([FileEntry(str(good)), FileEntry(str(broken)), FileEntry(str(other))])

        results = loader.results
        assert isinstance(results[0], LoadedImage)
        assert results[0].aspect_ratio == pytest.approx(1.5)
        assert results[1] is SlotState.FAILED
        assert isinstance(results[2], LoadedImage)
        assert len(loader.errors) == 1 and loader.errors[0].endswith("broken.jpg")
        assert durable.count().value == 2
        for slot in (results[0], results[2]):
            assert slot.original is None
            assert cache.session.get(slot.url).original is None
        reopened = results[0].open_original()
        assert (reopened.width, reopened.height) == (120, 80)
    finally:
        durable.close()

"""Gallery loader: materializes a folder's images one at a time.

Entries are processed strictly in input order on the Qt thread that owns the
loader. After each entry a single-shot timer (`pacing_ms`) hands control
back to the event loop so views can repaint between items.

Each run is tagged with a generation number. Starting a new run (or calling
`cancel()`) bumps the generation; steps belonging to an older generation
are dropped before they write anything, so a superseded run can never touch
the results of the current one.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from functools import partial

from PySide6.QtCore import QObject, QTimer, Signal

from photo_gallery.logger import get_logger
from photo_gallery.path_utils import url_for_path

from .errors import DecodeError
from .metrics import metrics
from .models import FileEntry, LoadedImage, SlotState
from .thumbnailer import load_image
from .tiered_cache import TieredImageCache

_logger = get_logger("loader")

Slot = LoadedImage | SlotState


def _entry_path(entry: FileEntry | str) -> str:
    return entry.path if isinstance(entry, FileEntry) else str(entry)


class GalleryLoader(QObject):
    """Load Orchestrator.

    `results[i]` always corresponds to input entry `i` and is a LoadedImage,
    `SlotState.PENDING` or `SlotState.FAILED`.
    """

    started = Signal(int, int)  # generation, total
    item_loaded = Signal(int, object)  # index, LoadedImage
    item_failed = Signal(int, str)  # index, url
    progress = Signal(int, int)  # processed, total
    finished = Signal(int)  # generation

    def __init__(
        self,
        cache: TieredImageCache,
        resolve: Callable[[str], str] = url_for_path,
        generate: Callable[[str], LoadedImage] = load_image,
        pacing_ms: int = 5,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._cache = cache
        self._resolve = resolve
        self._generate = generate
        self._pacing_ms = max(0, int(pacing_ms))
        self._generation = 0
        self._entries: list[FileEntry | str] = []
        self._results: list[Slot] = []
        self._errors: list[str] = []
        self._progress = 0
        self._loading = False

    # ---- state -----------------------------------------------------
    @property
    def generation(self) -> int:
        return self._generation

    @property
    def results(self) -> list[Slot]:
        return list(self._results)

    @property
    def errors(self) -> list[str]:
        return list(self._errors)

    @property
    def progress_count(self) -> int:
        return self._progress

    @property
    def total(self) -> int:
        return len(self._entries)

    @property
    def failed_count(self) -> int:
        return len(self._errors)

    @property
    def is_loading(self) -> bool:
        return self._loading

    def set_pacing(self, pacing_ms: int) -> None:
        self._pacing_ms = max(0, int(pacing_ms))

    # ---- public API ------------------------------------------------
    def start(self, entries: Sequence[FileEntry | str]) -> int:
        """Begin loading `entries` on the event loop; returns the run's generation."""
        gen = self._reset(entries)
        QTimer.singleShot(0, partial(self._step, gen, 0))
        return gen

    def run(self, entries: Sequence[FileEntry | str]) -> list[Slot]:
        """Load `entries` synchronously, without pacing, and return the results."""
        gen = self._reset(entries)
        for index in range(len(self._entries)):
            if not self._process(gen, index):
                return self.results
        self._finish(gen)
        return self.results

    def cancel(self) -> None:
        """Abandon the current run; its remaining steps become no-ops."""
        if self._loading:
            self._generation += 1
            self._loading = False
            _logger.debug("load cancelled at %d/%d", self._progress, len(self._entries))

    # ---- internals -------------------------------------------------
    def _reset(self, entries: Sequence[FileEntry | str]) -> int:
        self._generation += 1
        self._entries = list(entries)
        self._results = [SlotState.PENDING] * len(self._entries)
        self._errors = []
        self._progress = 0
        self._loading = True
        _logger.debug("load start: generation=%d total=%d", self._generation, len(self._entries))
        self.started.emit(self._generation, len(self._entries))
        return self._generation

    def _step(self, gen: int, index: int) -> None:
        if gen != self._generation:
            return
        if index >= len(self._entries):
            self._finish(gen)
            return
        if not self._process(gen, index):
            return
        QTimer.singleShot(self._pacing_ms, partial(self._step, gen, index + 1))

    def _materialize(self, url: str) -> LoadedImage:
        hit = self._cache.lookup(url)
        if hit is not None:
            return hit[0]
        return self._cache.store(self._generate(url))

    def _process(self, gen: int, index: int) -> bool:
        """Load entry `index`; False if the run was superseded meanwhile."""
        entry = self._entries[index]
        url = _entry_path(entry)
        image: LoadedImage | None = None
        try:
            url = self._resolve(url)
            image = self._materialize(url)
        except DecodeError as exc:
            _logger.warning("failed to load image %s: %s", url, exc.reason)
        except Exception:
            # One broken item must not end the run.
            _logger.warning("failed to load image %s", url, exc_info=True)

        if gen != self._generation:
            metrics.inc("loader.stale_discarded")
            _logger.debug("stale result dropped: generation=%d index=%d", gen, index)
            return False

        total = len(self._entries)
        if image is not None:
            self._results[index] = image
            self.item_loaded.emit(index, image)
        else:
            self._results[index] = SlotState.FAILED
            self._errors.append(url)
            metrics.inc("loader.failed")
            self.item_failed.emit(index, url)
        self._progress += 1
        self.progress.emit(self._progress, total)
        return True

    def _finish(self, gen: int) -> None:
        if gen != self._generation:
            return
        self._loading = False
        _logger.debug(
            "load finished: generation=%d loaded=%d failed=%d",
            gen,
            self._progress - len(self._errors),
            len(self._errors),
        )
        self.finished.emit(gen)

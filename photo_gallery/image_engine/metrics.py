"""Process-wide counters and timings for the thumbnail pipeline.

Keys are dotted `<component>.<event>` names, e.g. `cache.session_hit`,
`store.evicted` or `db_operator.task_duration`. The CLI logs a summary after
a load; tests reset and inspect the registry directly.

    from photo_gallery.image_engine.metrics import metrics
    metrics.inc("cache.miss")
    with metrics.timed("thumbnailer.load_duration"):
        ...
    metrics.snapshot()
"""

from __future__ import annotations

import time
from collections import Counter, defaultdict
from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock
from typing import Any

_HIT_KEYS = ("cache.session_hit", "cache.durable_hit")


class _Metrics:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: Counter[str] = Counter()
        self._samples: defaultdict[str, list[float]] = defaultdict(list)

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def count(self, key: str) -> int:
        with self._lock:
            return self._counters[key]

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        """Record the wall time of the block under `key`, whether or not it raises."""
        t0 = time.perf_counter()
        try:
            yield
        finally:
            dt = time.perf_counter() - t0
            with self._lock:
                self._samples[key].append(dt)

    def cache_hit_rate(self) -> float | None:
        """Share of tiered-cache lookups answered by either layer; None before any lookup."""
        with self._lock:
            hits = sum(self._counters[k] for k in _HIT_KEYS)
            lookups = hits + self._counters["cache.miss"]
        return hits / lookups if lookups else None

    def timing_summary(self, key: str) -> dict[str, float] | None:
        with self._lock:
            samples = list(self._samples.get(key, ()))
        if not samples:
            return None
        return {"count": len(samples), "total": sum(samples), "max": max(samples)}

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            counters = {k: v for k, v in self._counters.items() if v}
            timings = {k: list(v) for k, v in self._samples.items()}
        return {"counters": counters, "timings": timings}

    def reset(self) -> None:
        with self._lock:
            self._counters = Counter()
            self._samples = defaultdict(list)


metrics = _Metrics()

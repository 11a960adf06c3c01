from __future__ import annotations

import contextlib
import queue
import sqlite3
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from photo_gallery.logger import get_logger

from ..errors import StoreUnavailable
from ..metrics import metrics

_logger = get_logger("db_operator")


@dataclass
class _DbTask:
    fn: Callable[..., Any]
    args: tuple
    kwargs: dict
    future: Future
    retries: int = 3


class DbOperator:
    """Serialized DB operation queue / worker.

    Owns a worker thread that executes queued tasks against the SQLite file,
    one at a time, each on a fresh connection. Applies WAL and busy_timeout
    PRAGMAs and retries transient `sqlite3.OperationalError` with a short
    linear backoff. Each task runs inside one transaction: it is committed
    when the task returns and rolled back if it raises.
    """

    def __init__(self, db_path: Path | str, busy_timeout_ms: int = 5000):
        self._db_path = Path(db_path)
        self._queue: queue.Queue[_DbTask] = queue.Queue()
        self._stop_event = threading.Event()
        self._busy_timeout_ms = int(busy_timeout_ms)
        self._thread = threading.Thread(target=self._worker, name="photo_gallery-db", daemon=True)
        self._thread.start()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _open_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        try:
            conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.DatabaseError:
            _logger.debug("PRAGMA journal_mode=WAL failed", exc_info=True)
        conn.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout_ms)}")
        return conn

    def _enqueue(self, task: _DbTask) -> Future:
        if self._stop_event.is_set():
            raise StoreUnavailable(f"db operator for {self._db_path} is shut down")
        self._queue.put(task)
        return task.future

    def schedule_write(self, fn: Callable[..., Any], *args, retries: int = 3, **kwargs) -> Future:
        fut = self._enqueue(_DbTask(fn=fn, args=args, kwargs=kwargs, future=Future(), retries=retries))
        metrics.inc("db_operator.write_queued")
        return fut

    def schedule_read(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        # Reads are serialized as well to keep a single-writer model.
        fut = self._enqueue(_DbTask(fn=fn, args=args, kwargs=kwargs, future=Future(), retries=1))
        metrics.inc("db_operator.read_queued")
        return fut

    def _run_task(self, task: _DbTask) -> None:
        attempt = 0
        while True:
            conn = None
            try:
                with metrics.timed("db_operator.task_duration"):
                    conn = self._open_conn()
                    res = task.fn(conn, *task.args, **task.kwargs)
                    conn.commit()
                task.future.set_result(res)
                return
            except sqlite3.OperationalError as exc:
                if conn is not None:
                    with contextlib.suppress(sqlite3.Error):
                        conn.rollback()
                attempt += 1
                metrics.inc("db_operator.retries")
                if attempt > (task.retries or 0):
                    task.future.set_exception(exc)
                    return
                time.sleep(0.05 * attempt)
            except Exception as exc:
                if conn is not None:
                    with contextlib.suppress(sqlite3.Error):
                        conn.rollback()
                task.future.set_exception(exc)
                return
            finally:
                if conn is not None:
                    with contextlib.suppress(sqlite3.Error):
                        conn.close()

    def _worker(self) -> None:
        while not self._stop_event.is_set() or not self._queue.empty():
            try:
                task = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._run_task(task)
            finally:
                self._queue.task_done()

    def shutdown(self, wait: bool = True) -> None:
        self._stop_event.set()
        if wait:
            self._thread.join(timeout=5)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

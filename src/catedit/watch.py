from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from .editor import EditorEngine
from .logging_utils import debug_log
from .scheduler import RebuildScheduler

__all__ = ["TextFileWatcher"]

UpdateCallback = Callable[[EditorEngine, int], object]


class _TextFileEventHandler(FileSystemEventHandler):
    def __init__(self, path: Path, scheduler: RebuildScheduler) -> None:
        self.path = path
        self.scheduler = scheduler

    def _matches(self, raw_path: str | bytes) -> bool:
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode()
        return Path(raw_path).resolve() == self.path

    def on_created(self, event) -> None:  # type: ignore[override]
        if not event.is_directory and self._matches(event.src_path):
            self.scheduler.notify_change()

    def on_modified(self, event) -> None:  # type: ignore[override]
        if not event.is_directory and self._matches(event.src_path):
            self.scheduler.notify_change()

    def on_moved(self, event) -> None:  # type: ignore[override]
        if not event.is_directory and self._matches(event.dest_path):
            self.scheduler.notify_change()


class TextFileWatcher:
    """
    Keep an engine in step with a text file on disk.

    File events only request a reload; `tick` performs at most one reload
    no matter how many events arrived since the previous tick.
    """

    def __init__(
        self,
        path: Path,
        engine: EditorEngine,
        on_update: UpdateCallback | None = None,
        interval: float = 0.5,
    ) -> None:
        self.path = Path(path).resolve()
        self.engine = engine
        self.on_update = on_update
        self.interval = interval
        self.scheduler = RebuildScheduler(self._reload)
        self._observer: PollingObserver | None = None

    def _reload(self, token: int) -> None:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            debug_log(f"watch: {self.path} disappeared, keeping previous text")
            return
        self.engine.set_text(text)
        debug_log(f"watch: reloaded {self.path.name} (request {token})")
        if self.on_update is not None:
            self.on_update(self.engine, token)

    def start(self) -> None:
        observer = PollingObserver(timeout=self.interval)
        observer.schedule(
            _TextFileEventHandler(self.path, self.scheduler),
            str(self.path.parent),
            recursive=False,
        )
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        self.scheduler.cancel()

    def tick(self) -> bool:
        return self.scheduler.flush()

    def run(self, stop_event: threading.Event | None = None) -> None:
        stop_event = stop_event or threading.Event()
        self.start()
        try:
            while not stop_event.wait(self.interval):
                self.tick()
        finally:
            self.stop()

"""
Music Folder Watcher.
Monitors the music root and emits a single "changed" signal for bursts of
filesystem events on project directories and the files directly inside them.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from shared.constants import WATCH_DEBOUNCE_SEC, WATCH_MAX_DEPTH

logger = logging.getLogger(__name__)


class MusicFolderHandler(FileSystemEventHandler):
    def __init__(self, root: Path, on_change: Callable[[], None],
                 debounce_delay: float = WATCH_DEBOUNCE_SEC):
        self.root = os.path.normpath(str(Path(root).absolute()))
        self.on_change = on_change
        self.debounce_timer: Optional[threading.Timer] = None
        self.debounce_delay = debounce_delay  # seconds to wait after the last event
        self._lock = threading.Lock()

    def _depth(self, path) -> Optional[int]:
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        try:
            rel = os.path.relpath(os.path.normpath(path), self.root)
        except ValueError:
            return None
        if rel == ".":
            return 0
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return None
        return len(Path(rel).parts)

    def is_relevant(self, event: FileSystemEvent) -> bool:
        """Only the project directories and their immediate contents count."""
        paths = [event.src_path, getattr(event, "dest_path", "")]
        for path in paths:
            if not path:
                continue
            depth = self._depth(path)
            if depth is not None and 1 <= depth <= WATCH_MAX_DEPTH:
                return True
        return False

    def on_any_event(self, event):
        if event.event_type not in ("created", "deleted", "modified", "moved"):
            return
        if self.is_relevant(event):
            self._trigger()

    def _trigger(self):
        """Coalesce a burst of events into one notification."""
        if self.debounce_delay <= 0:
            self._fire()
            return
        with self._lock:
            if self.debounce_timer:
                self.debounce_timer.cancel()
            self.debounce_timer = threading.Timer(self.debounce_delay, self._fire)
            self.debounce_timer.daemon = True
            self.debounce_timer.start()

    def _fire(self):
        try:
            self.on_change()
        except Exception:
            logger.exception("Change callback failed")

    def cancel(self):
        with self._lock:
            if self.debounce_timer:
                self.debounce_timer.cancel()
                self.debounce_timer = None


class LibraryWatcher:
    def __init__(self, root: Path, on_change: Callable[[], None],
                 debounce_delay: float = WATCH_DEBOUNCE_SEC):
        self.root = Path(root).expanduser().absolute()
        self.handler = MusicFolderHandler(self.root, on_change, debounce_delay)
        self.observer = None

    @property
    def running(self) -> bool:
        return self.observer is not None

    def start(self):
        """Start monitoring the music root."""
        if self.observer is not None:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        self.observer = Observer()
        self.observer.daemon = True
        self.observer.schedule(self.handler, str(self.root), recursive=True)
        self.observer.start()
        logger.info("Watching %s for changes", self.root)

    def stop(self):
        if self.observer is None:
            return
        self.handler.cancel()
        self.observer.stop()
        self.observer.join()
        self.observer = None
        logger.info("Stopped watching %s", self.root)

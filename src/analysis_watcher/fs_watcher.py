"""Filesystem subscriptions using the watchdog library."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .models import ChangeType, FileChangeEvent

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[FileChangeEvent], None]


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog file events to FileChangeEvents."""

    def __init__(self, callback: ChangeCallback, root: Path):
        super().__init__()
        self.callback = callback
        self.root = root

    def _emit(self, change_type: ChangeType, path: str) -> None:
        event = FileChangeEvent(
            path=Path(path),
            change_type=change_type,
            timestamp=time.time(),
        )
        try:
            self.callback(event)
        except Exception as e:
            logger.error(f"Change callback failed for {path}: {e}")

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(ChangeType.CREATED, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(ChangeType.DELETED, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(ChangeType.MODIFIED, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._emit(ChangeType.DELETED, event.src_path)
        self._emit(ChangeType.CREATED, event.dest_path)


class FSWatcherPool:
    """
    Manages one watchdog observer per root.

    Every observer feeds the same change callback, so the caller sees
    one stream of FileChangeEvents regardless of which root changed.
    """

    def __init__(self, callback: ChangeCallback, recursive: bool = True):
        """
        Initialize the watcher pool.

        Args:
            callback: Receives every file change under any watched root
            recursive: Whether to watch directories recursively
        """
        self.callback = callback
        self.recursive = recursive
        self._observers: Dict[Path, Observer] = {}
        self._lock = threading.Lock()

    def start_watching(self, root: Path) -> bool:
        """
        Start watching a root directory.

        Args:
            root: Path to the root directory

        Returns:
            True if watching started, False if already watching

        Raises:
            FileNotFoundError: If the root is not an existing directory
        """
        root = root.resolve()
        if not root.is_dir():
            raise FileNotFoundError(f"Root is not a directory: {root}")

        with self._lock:
            if root in self._observers:
                return False

            observer = Observer()
            observer.schedule(FSEventHandler(self.callback, root), str(root), recursive=self.recursive)
            observer.daemon = True
            observer.start()

            self._observers[root] = observer
        logger.info(f"Watching {root}")
        return True

    def stop_watching(self, root: Path) -> bool:
        """
        Stop watching a root directory.

        Args:
            root: Path to the root directory

        Returns:
            True if watching stopped, False if not watching
        """
        root = root.resolve()

        with self._lock:
            observer = self._observers.pop(root, None)

        if observer is None:
            return False

        observer.stop()
        observer.join(timeout=5.0)
        logger.info(f"Stopped watching {root}")
        return True

    def stop_all(self) -> int:
        """
        Stop all observers.

        Returns:
            Number of observers stopped
        """
        with self._lock:
            observers = list(self._observers.values())
            self._observers.clear()

        for observer in observers:
            observer.stop()
        for observer in observers:
            observer.join(timeout=5.0)
        return len(observers)

    def is_watching(self, root: Path) -> bool:
        """Check if a root is being watched."""
        root = root.resolve()

        with self._lock:
            return root in self._observers

    def get_watched_roots(self) -> List[Path]:
        """Get list of currently watched roots."""
        with self._lock:
            return list(self._observers.keys())

    def __len__(self) -> int:
        """Return the number of active observers."""
        with self._lock:
            return len(self._observers)

# fswatcher/watch/monitor.py

"""
Managers watching several independent roots

Each root gets its own DirectoryWatcher or RecursiveDirectoryWatcher. Their
notifications are forwarded to the manager's emitter, so consumers register
once on the manager.
"""
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import FSWatcherError
from .handlers import CHANNELS
from .watcher import (
    WatcherBase,
    WatcherConfiguration,
    DirectoryWatcher,
    RecursiveDirectoryWatcher,
    RecursiveWatchOptions,
)
from ..utils.file_utils import normalize_path

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class MultiDirectoryWatcher(WatcherBase):
    """
    Watches the immediate contents of several directories
    """

    def __init__(self, configuration: Optional[WatcherConfiguration] = None):
        """
        Initialize multi-directory watcher

        Args:
            configuration: Configuration shared by every root
        """
        super().__init__(configuration)
        self.watchers: Dict[Path, WatcherBase] = {}
        self._listeners: Dict[Path, List[str]] = {}
        self._lock = threading.Lock()

    def _create_watcher(self, directory: Path) -> WatcherBase:
        return DirectoryWatcher(directory, self.configuration)

    def _forward(self, watcher: WatcherBase) -> List[str]:
        """Relay every channel of a root watcher to the manager"""
        listener_ids = []
        for channel in CHANNELS:
            def relay(payload, channel=channel):
                self._emitter.emit(channel, payload)
            listener_ids.append(watcher.subscribe(channel, relay))
        return listener_ids

    def start_watching(self, directories: Iterable[PathLike]) -> bool:
        """
        Start watching several directories

        Returns:
            True if every directory is being watched
        """
        results = [self.start_watching_directory(d) for d in directories]
        return all(results)

    def start_watching_directory(self, directory: PathLike) -> bool:
        """
        Start watching one directory

        Construction and start failures are reported on the error channel.

        Returns:
            True if the directory is being watched
        """
        directory = normalize_path(directory)

        with self._lock:
            if directory in self.watchers:
                logger.warning(f"Already watching directory: {directory}")
                return True

        try:
            watcher = self._create_watcher(directory)
        except FSWatcherError as e:
            self._report_error(e)
            return False

        listener_ids = self._forward(watcher)
        if not watcher.start():
            return False

        with self._lock:
            if directory not in self.watchers:
                self.watchers[directory] = watcher
                self._listeners[directory] = listener_ids
                watcher = None

        if watcher is not None:
            # Another thread added the same root first
            watcher.stop()

        return True

    def stop_watching(self, directory: PathLike) -> bool:
        """Stop watching one directory, True if it was not watched"""
        directory = normalize_path(directory)

        with self._lock:
            watcher = self.watchers.pop(directory, None)
            listener_ids = self._listeners.pop(directory, [])

        if watcher is None:
            return True

        success = watcher.stop()
        for listener_id in listener_ids:
            watcher.unsubscribe(listener_id)

        logger.info(f"Stopped watching root: {directory}")
        return success

    def stop_all_watching(self) -> bool:
        """Stop watching every directory"""
        with self._lock:
            watchers = list(self.watchers.items())
            listeners = dict(self._listeners)
            self.watchers.clear()
            self._listeners.clear()

        success = True
        for directory, watcher in watchers:
            if not watcher.stop():
                success = False
            for listener_id in listeners.get(directory, []):
                watcher.unsubscribe(listener_id)

        self._emitter.finish_streams()
        return success

    def start(self) -> bool:
        """Start watching every directory already registered"""
        with self._lock:
            watchers = list(self.watchers.values())
        return all([watcher.start() for watcher in watchers])

    def stop(self) -> bool:
        return self.stop_all_watching()

    @property
    def watched_directories(self) -> List[Path]:
        """Roots currently managed"""
        with self._lock:
            return sorted(self.watchers)

    @property
    def is_watching(self) -> bool:
        """True if any root is being watched"""
        with self._lock:
            watchers = list(self.watchers.values())
        return any(watcher.is_watching for watcher in watchers)

    def is_watching_directory(self, directory: PathLike) -> bool:
        with self._lock:
            watcher = self.watchers.get(normalize_path(directory))
        return watcher is not None and watcher.is_watching

    def get_status(self) -> Dict[str, Any]:
        """Get status of every root"""
        with self._lock:
            watchers = list(self.watchers.items())
        return {
            'is_watching': any(w.is_watching for _, w in watchers),
            'root_count': len(watchers),
            'roots': {str(d): w.get_status() for d, w in watchers},
        }


class MultiRecursiveDirectoryWatcher(MultiDirectoryWatcher):
    """
    Watches several directory trees
    """

    def __init__(self, configuration: Optional[WatcherConfiguration] = None,
                 options: Optional[RecursiveWatchOptions] = None):
        """
        Initialize multi-tree watcher

        Args:
            configuration: Configuration shared by every tree
            options: Recursion options applied to every tree
        """
        super().__init__(configuration)
        self.options = options if options is not None else RecursiveWatchOptions()

    def _create_watcher(self, directory: Path) -> RecursiveDirectoryWatcher:
        return RecursiveDirectoryWatcher(directory, self.configuration, self.options)

    @property
    def all_watched_directories(self) -> List[Path]:
        """Every directory of every tree"""
        with self._lock:
            watchers = list(self.watchers.values())

        directories = set()
        for watcher in watchers:
            directories.update(watcher.watched_directories)
        return sorted(directories)

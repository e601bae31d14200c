# fswatcher/watch/watcher.py

"""
Directory watcher implementations
"""
import os
import logging
import threading
import weakref
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Union

from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch
from watchdog.observers.polling import PollingObserver

from .debounce import Debouncer
from .errors import (
    FSWatcherError,
    DirectoryNotFound,
    InvalidConfiguration,
    error_from_os_error,
)
from .events import ChangeEvent, EventType, DEFAULT_EVENT_TYPES
from .filters import FileFilter, FilterChain
from .handlers import (
    ChangeEmitter,
    DirectoryEventHandler,
    AsyncChangeStream,
    DIRECTORY_CHANGE,
    FILTERED_CHANGE,
    ERROR,
    EVENT,
)
from .ignore import IgnoreList, FileTransformPredictor, TransformRule
from .patterns import matches_any
from ..utils.config import Config
from ..utils.file_utils import list_directory, list_subdirectories, normalize_path

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass
class WatcherConfiguration:
    """
    Settings shared by every watcher built from it

    The filter chain, ignore list and predictor are shared by reference, so
    changing them on one watcher affects all watchers using this object.
    """
    debounce_interval: float = 0.5  # seconds
    event_types: FrozenSet[EventType] = DEFAULT_EVENT_TYPES
    executor: Optional[Executor] = None
    use_polling: bool = False
    poll_interval: float = 1.0  # seconds
    filter_chain: FilterChain = field(default_factory=FilterChain)
    ignore_list: IgnoreList = field(default_factory=IgnoreList)
    transform_predictor: Optional[FileTransformPredictor] = None

    def __post_init__(self):
        if self.debounce_interval < 0:
            raise InvalidConfiguration(
                f"debounce interval must not be negative: {self.debounce_interval}")
        if self.poll_interval <= 0:
            raise InvalidConfiguration(
                f"poll interval must be positive: {self.poll_interval}")

        event_types = set()
        for event_type in self.event_types:
            if isinstance(event_type, str):
                try:
                    event_type = EventType(event_type.lower())
                except ValueError:
                    raise InvalidConfiguration(f"unknown event type: {event_type}")
            event_types.add(event_type)
        self.event_types = frozenset(event_types)

    @classmethod
    def from_config(cls, config: Config) -> 'WatcherConfiguration':
        """Build a configuration from the file-backed application config"""
        watch = config.watchdog

        filter_chain = FilterChain()
        if watch.extensions:
            filter_chain.add(FileFilter.file_extensions(watch.extensions))

        predictor = None
        if config.transforms:
            predictor = FileTransformPredictor([
                TransformRule(
                    input_pattern=rule.input_pattern,
                    output_template=rule.output_template,
                    format_change=rule.format_change,
                )
                for rule in config.transforms
            ])

        return cls(
            debounce_interval=watch.debounce_time,
            event_types=frozenset(watch.event_types),
            use_polling=watch.use_polling,
            poll_interval=watch.poll_interval,
            filter_chain=filter_chain,
            ignore_list=IgnoreList(patterns=watch.ignore_patterns),
            transform_predictor=predictor,
        )

    def create_observer(self) -> BaseObserver:
        """Create appropriate observer"""
        if self.use_polling:
            logger.debug(f"Using polling observer (interval: {self.poll_interval}s)")
            return PollingObserver(timeout=self.poll_interval)
        logger.debug("Using OS event observer")
        return Observer()


@dataclass
class RecursiveWatchOptions:
    """Options controlling how a recursive watcher grows its tree"""
    max_depth: Optional[int] = None  # inclusive, root is depth 0
    follow_symlinks: bool = False
    exclude_patterns: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.max_depth is not None and self.max_depth < 0:
            raise InvalidConfiguration(f"max depth must not be negative: {self.max_depth}")
        self.exclude_patterns = list(self.exclude_patterns)

    @classmethod
    def from_config(cls, config: Config) -> 'RecursiveWatchOptions':
        watch = config.watchdog
        return cls(
            max_depth=watch.max_depth,
            follow_symlinks=watch.follow_symlinks,
            exclude_patterns=list(watch.exclude_patterns),
        )


def _validate_directory(directory: Path):
    if not directory.exists():
        raise DirectoryNotFound(directory)
    if not directory.is_dir():
        raise InvalidConfiguration(f"not a directory: {directory}")


def _weak_callback(method: Callable) -> Callable:
    """Wrap a bound method so the observer does not keep its owner alive"""
    ref = weakref.WeakMethod(method)

    def callback(*args):
        target = ref()
        if target is not None:
            target(*args)

    return callback


def _release_watch(observer: BaseObserver, watch: ObservedWatch, owned: bool):
    """Unschedule the watch of a watcher that was never stopped"""
    try:
        observer.unschedule(watch)
    except (KeyError, OSError) as e:
        logger.debug(f"Watch for {watch.path} already released: {e}")
    if owned:
        observer.stop()


class WatcherBase:
    """
    Shared surface of every watcher: notification sinks and filter/ignore
    pass-throughs onto the configuration
    """

    def __init__(self, configuration: Optional[WatcherConfiguration] = None,
                 emitter: Optional[ChangeEmitter] = None):
        self.configuration = configuration if configuration is not None else WatcherConfiguration()
        self._owns_emitter = emitter is None
        self._emitter = ChangeEmitter() if emitter is None else emitter

    # Notifications

    @property
    def emitter(self) -> ChangeEmitter:
        return self._emitter

    @property
    def on_directory_change(self) -> Optional[Callable[[Path], Any]]:
        return self._emitter.on_directory_change

    @on_directory_change.setter
    def on_directory_change(self, callback: Optional[Callable[[Path], Any]]):
        self._emitter.on_directory_change = callback

    @property
    def on_filtered_change(self) -> Optional[Callable[[List[Path]], Any]]:
        return self._emitter.on_filtered_change

    @on_filtered_change.setter
    def on_filtered_change(self, callback: Optional[Callable[[List[Path]], Any]]):
        self._emitter.on_filtered_change = callback

    @property
    def on_error(self) -> Optional[Callable[[Exception], Any]]:
        return self._emitter.on_error

    @on_error.setter
    def on_error(self, callback: Optional[Callable[[Exception], Any]]):
        self._emitter.on_error = callback

    @property
    def delegate(self):
        return self._emitter.delegate

    @delegate.setter
    def delegate(self, delegate):
        self._emitter.delegate = delegate

    def subscribe(self, channel: str, callback: Callable[[Any], Any]) -> str:
        return self._emitter.subscribe(channel, callback)

    def unsubscribe(self, listener_id: str) -> bool:
        return self._emitter.unsubscribe(listener_id)

    def subscribe_queue(self, channel: str, maxsize: int = 0):
        return self._emitter.subscribe_queue(channel, maxsize)

    def stream(self, channel: str = FILTERED_CHANGE, loop=None) -> AsyncChangeStream:
        return self._emitter.stream(channel, loop)

    def _report_error(self, error: FSWatcherError):
        logger.error(str(error))
        self._emitter.emit(ERROR, error)

    # Filters and ignores

    def add_filter(self, file_filter: FileFilter):
        """Add a filter to the shared filter chain"""
        self.configuration.filter_chain.add(file_filter)

    def clear_filters(self):
        """Remove every filter from the shared filter chain"""
        self.configuration.filter_chain.clear()

    def add_ignored_files(self, paths: Union[PathLike, Iterable[PathLike]]):
        """Ignore one or more paths"""
        self.configuration.ignore_list.add_ignored(paths)

    def add_predictive_ignore(self, paths: Union[PathLike, Iterable[PathLike]]):
        """Ignore paths a consumer is about to create"""
        self.configuration.ignore_list.add_predictive_ignore(paths)

    # Context manager

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def start(self) -> bool:
        raise NotImplementedError

    def stop(self) -> bool:
        raise NotImplementedError


class DirectoryWatcher(WatcherBase):
    """
    Watches the immediate contents of one directory

    Raw events are debounced; once quiet, the directory is listed, ignored
    entries and entries failing the filter chain are removed, and the
    survivors are reported as a filtered change.

    Call stop() or use the watcher as a context manager to release the
    watch. A started watcher that is garbage collected, or still bound at
    interpreter exit, has its watch released by a finalizer.
    """

    def __init__(self, directory: PathLike,
                 configuration: Optional[WatcherConfiguration] = None,
                 observer: Optional[BaseObserver] = None,
                 emitter: Optional[ChangeEmitter] = None):
        """
        Initialize directory watcher

        Args:
            directory: Directory to watch
            configuration: Watcher configuration (defaults if None)
            observer: Shared, already started observer (own observer if None)
            emitter: Shared emitter (own emitter if None)

        Raises:
            DirectoryNotFound: If the directory does not exist
            InvalidConfiguration: If the path is not a directory
        """
        super().__init__(configuration, emitter)
        self.directory = normalize_path(directory)
        _validate_directory(self.directory)

        self._observer = observer
        self._owns_observer = observer is None
        self._watch: Optional[ObservedWatch] = None
        self._finalizer: Optional[weakref.finalize] = None
        self._lock = threading.Lock()
        self._last_kind = EventType.UNKNOWN

        self._debouncer = Debouncer(
            self.configuration.debounce_interval,
            self.configuration.executor,
        )
        self.handler = DirectoryEventHandler(
            self.directory,
            _weak_callback(self._on_raw_event),
            self.configuration.event_types,
        )

        self.stats = {
            'start_time': None,
            'total_events': 0,
            'directory_changes': 0,
            'filtered_changes': 0,
            'last_event': None,
        }

        logger.debug(f"DirectoryWatcher initialized for {self.directory}")

    @property
    def is_watching(self) -> bool:
        with self._lock:
            return self._watch is not None

    def start(self) -> bool:
        """Start watching directory"""
        with self._lock:
            if self._watch is not None:
                return True

            error = None
            if not self.directory.exists():
                error = DirectoryNotFound(self.directory)
            elif not self.directory.is_dir():
                error = InvalidConfiguration(f"not a directory: {self.directory}")
            else:
                error = self._bind()

        if error is not None:
            self._report_error(error)
            return False

        self.stats['start_time'] = datetime.now()
        logger.info(f"Started watching directory: {self.directory}")
        return True

    def _bind(self) -> Optional[FSWatcherError]:
        """Schedule the watch, caller holds the state lock"""
        owned = self._owns_observer
        observer = self.configuration.create_observer() if owned else self._observer

        try:
            watch = observer.schedule(self.handler, str(self.directory), recursive=False)
            if owned:
                observer.start()
        except OSError as e:
            if owned:
                observer.stop()
            return error_from_os_error(self.directory, e)

        self._observer = observer
        self._watch = watch
        # Released if the watcher is collected or the interpreter exits without stop()
        self._finalizer = weakref.finalize(self, _release_watch, observer, watch, owned)
        return None

    def stop(self) -> bool:
        """Stop watching directory"""
        with self._lock:
            watch, self._watch = self._watch, None
            observer = self._observer
            finalizer, self._finalizer = self._finalizer, None
            if self._owns_observer:
                self._observer = None

        if finalizer is not None:
            finalizer.detach()

        if watch is None:
            return True

        success = True
        try:
            observer.unschedule(watch)
        except (KeyError, OSError) as e:
            success = False
            logger.error(f"Error unscheduling watch for {self.directory}: {e}")

        # Outside the state lock: the pending action may be running right now
        self._debouncer.cancel()

        if self._owns_observer:
            observer.stop()
            if observer.is_alive() and threading.current_thread() is not observer:
                observer.join(timeout=10)

        if self._owns_emitter:
            self._emitter.finish_streams()

        logger.info(f"Stopped watching directory: {self.directory}")
        return success

    def _on_raw_event(self, event: ChangeEvent):
        self.stats['total_events'] += 1
        self.stats['last_event'] = event.timestamp
        self._last_kind = event.kind
        logger.debug(f"Raw event in {self.directory}: {event}")
        self._debouncer.debounce(self._process_changes)

    def _process_changes(self):
        """Debounced action: list, ignore, filter, predict, emit"""
        if not self.is_watching:
            return

        configuration = self.configuration
        try:
            entries = list_directory(self.directory, skip_hidden=True)
        except OSError as e:
            logger.debug(f"Cannot list {self.directory}: {e}")
            entries = []

        candidates = [
            entry for entry in entries
            if not configuration.ignore_list.should_ignore(entry)
        ]
        candidates = configuration.filter_chain.filter(candidates)

        self.stats['directory_changes'] += 1
        self._emitter.emit(DIRECTORY_CHANGE, self.directory)
        self._emitter.emit(EVENT, ChangeEvent(path=self.directory, kind=self._last_kind))

        if not candidates:
            return

        predictor = configuration.transform_predictor
        if predictor is not None:
            outputs = predictor.predict_many(candidates)
            if outputs:
                configuration.ignore_list.add_predictive_ignore(outputs)

        self.stats['filtered_changes'] += 1
        logger.debug(f"{len(candidates)} matching entries in {self.directory}")
        self._emitter.emit(FILTERED_CHANGE, candidates)

    def get_status(self) -> Dict[str, Any]:
        """Get watcher status"""
        start_time = self.stats['start_time']
        return {
            'directory': str(self.directory),
            'is_watching': self.is_watching,
            'use_polling': self.configuration.use_polling,
            'poll_interval': self.configuration.poll_interval if self.configuration.use_polling else None,
            'debounce_interval': self.configuration.debounce_interval,
            'start_time': start_time,
            'duration': (datetime.now() - start_time).total_seconds() if start_time else 0,
            'stats': {**self.stats, **self.handler.get_stats()},
        }

    def __repr__(self):
        return f"DirectoryWatcher({str(self.directory)!r})"


class RecursiveDirectoryWatcher(WatcherBase):
    """
    Watcher that manages one DirectoryWatcher per directory of a tree

    Every node shares the tree's observer and emitter. A directory change
    reported by any node rescans that directory for new subdirectories and
    prunes nodes whose directory has disappeared.
    """

    def __init__(self, root_directory: PathLike,
                 configuration: Optional[WatcherConfiguration] = None,
                 options: Optional[RecursiveWatchOptions] = None):
        """
        Initialize recursive watcher

        Args:
            root_directory: Root directory to watch
            configuration: Configuration shared by every node
            options: Depth, symlink and exclude settings

        Raises:
            DirectoryNotFound: If the root does not exist
            InvalidConfiguration: If the root is not a directory
        """
        super().__init__(configuration)
        self.root_directory = normalize_path(root_directory)
        _validate_directory(self.root_directory)
        self.options = options if options is not None else RecursiveWatchOptions()

        # Watchers by directory, with the real path each one resolves to
        self.watchers: Dict[Path, DirectoryWatcher] = {}
        self._real_paths: Dict[Path, str] = {}
        self._lock = threading.Lock()
        self._active = False
        self._observer: Optional[BaseObserver] = None

        self._emitter.subscribe(DIRECTORY_CHANGE, self._on_directory_change)

        logger.debug(f"RecursiveDirectoryWatcher initialized for {self.root_directory}")

    @property
    def is_watching(self) -> bool:
        with self._lock:
            return self._active

    @property
    def watched_directories(self) -> List[Path]:
        """Snapshot of every directory currently in the tree"""
        with self._lock:
            return sorted(self.watchers)

    def start(self) -> bool:
        """Start watching the tree"""
        with self._lock:
            if self._active:
                return True
            self._active = True
            observer = self.configuration.create_observer()
            self._observer = observer

        try:
            observer.start()
        except OSError as e:
            self._report_error(error_from_os_error(self.root_directory, e))
            self.stop()
            return False

        self._scan(self.root_directory)

        with self._lock:
            root_watched = self.root_directory in self.watchers
        if not root_watched:
            self.stop()
            return False

        logger.info(
            f"Started watching {self.root_directory} recursively "
            f"({len(self.watched_directories)} directories)"
        )
        return True

    def stop(self) -> bool:
        """Stop every watcher in the tree"""
        with self._lock:
            if not self._active:
                return True
            self._active = False
            watchers = list(self.watchers.values())
            self.watchers.clear()
            self._real_paths.clear()
            observer, self._observer = self._observer, None

        success = True
        for watcher in watchers:
            if not watcher.stop():
                success = False

        if observer is not None:
            observer.stop()
            if observer.is_alive():
                observer.join(timeout=10)

        self._emitter.finish_streams()

        logger.info(f"Stopped watching {self.root_directory} ({len(watchers)} directories)")
        return success

    def _depth(self, directory: Path) -> Optional[int]:
        """Depth below the root, None if outside the tree"""
        try:
            return len(directory.relative_to(self.root_directory).parts)
        except ValueError:
            return None

    def _within_depth(self, depth: int) -> bool:
        max_depth = self.options.max_depth
        return max_depth is None or depth <= max_depth

    def _subdirectories(self, directory: Path) -> List[Path]:
        """Subdirectories eligible for watching"""
        try:
            subdirectories = list_subdirectories(
                directory,
                skip_hidden=True,
                follow_symlinks=self.options.follow_symlinks,
            )
        except FileNotFoundError:
            return []
        except OSError as e:
            self._report_error(error_from_os_error(directory, e))
            return []

        return [
            subdirectory for subdirectory in subdirectories
            if not matches_any(subdirectory.name, self.options.exclude_patterns)
        ]

    def _scan(self, directory: Path):
        """Depth-first scan adding a watcher for every unwatched directory"""
        stack = [directory]
        while stack:
            current = stack.pop()
            depth = self._depth(current)
            if depth is None or not self._within_depth(depth):
                continue
            if not self._start_watcher(current):
                continue
            if self._within_depth(depth + 1):
                stack.extend(reversed(self._subdirectories(current)))

    def _start_watcher(self, directory: Path) -> bool:
        """
        Add a watcher for a directory

        Returns:
            True if a new watcher was started
        """
        real_path = os.path.realpath(directory)

        with self._lock:
            if not self._active or directory in self.watchers:
                return False
            if real_path in self._real_paths.values():
                logger.debug(f"Skipping {directory}, {real_path} is already watched")
                return False
            observer = self._observer

        try:
            watcher = DirectoryWatcher(
                directory,
                self.configuration,
                observer=observer,
                emitter=self._emitter,
            )
        except FSWatcherError as e:
            if directory == self.root_directory:
                self._report_error(e)
            else:
                # Vanished between listing and now
                logger.debug(f"Not watching {directory}: {e}")
            return False

        with self._lock:
            if not self._active or directory in self.watchers:
                return False
            self.watchers[directory] = watcher
            self._real_paths[directory] = real_path

        started = watcher.start()

        with self._lock:
            current = self.watchers.get(directory) is watcher
            if not started and current:
                del self.watchers[directory]
                del self._real_paths[directory]
            keep = started and current and self._active

        if not keep:
            # Failed, or the tree was stopped while this watcher was starting
            watcher.stop()
            return False

        logger.debug(f"Watching {directory} (depth {self._depth(directory)})")
        return True

    def _stop_watchers(self, directories: List[Path]):
        """Remove watchers from the tree and stop them"""
        removed = []
        with self._lock:
            for directory in directories:
                watcher = self.watchers.pop(directory, None)
                self._real_paths.pop(directory, None)
                if watcher is not None:
                    removed.append(watcher)

        for watcher in removed:
            watcher.stop()
            logger.debug(f"Stopped watching removed directory: {watcher.directory}")

    def _prune(self, directory: Path):
        """Drop watchers at or below directory whose target is gone"""
        with self._lock:
            candidates = [
                path for path in self.watchers
                if path != self.root_directory
                and (path == directory or directory in path.parents)
            ]

        stale = [path for path in candidates if not path.is_dir()]
        if stale:
            self._stop_watchers(stale)

    def _on_directory_change(self, directory: Path):
        """Rescan one directory after it changed"""
        if not self.is_watching:
            return

        depth = self._depth(directory)
        if depth is None:
            return

        self._prune(directory)

        if directory.is_dir() and self._within_depth(depth + 1):
            for subdirectory in self._subdirectories(directory):
                self._scan(subdirectory)

    def get_status(self) -> Dict[str, Any]:
        """Get tree status"""
        with self._lock:
            watchers = list(self.watchers.values())
            active = self._active

        return {
            'root_directory': str(self.root_directory),
            'is_watching': active,
            'watcher_count': len(watchers),
            'max_depth': self.options.max_depth,
            'follow_symlinks': self.options.follow_symlinks,
            'exclude_patterns': list(self.options.exclude_patterns),
            'watchers': {str(w.directory): w.get_status() for w in watchers},
        }

    def __repr__(self):
        return f"RecursiveDirectoryWatcher({str(self.root_directory)!r})"

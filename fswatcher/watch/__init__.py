"""
fswatcher watch module
Recursive change detection: debounced, filtered directory notifications
"""
from .errors import (
    FSWatcherError,
    DirectoryNotFound,
    InvalidConfiguration,
    CannotOpenDirectory,
    InsufficientPermissions,
    SystemResourcesUnavailable,
)
from .events import ChangeEvent, EventType
from .patterns import matches, matches_any, glob_to_regex
from .debounce import Debouncer
from .filters import FileFilter, FilterChain
from .ignore import IgnoreList, TransformRule, FileTransformPredictor
from .handlers import ChangeEmitter, DirectoryEventHandler, AsyncChangeStream
from .watcher import (
    WatcherConfiguration,
    RecursiveWatchOptions,
    DirectoryWatcher,
    RecursiveDirectoryWatcher,
)
from .monitor import MultiDirectoryWatcher, MultiRecursiveDirectoryWatcher

__all__ = [
    'FSWatcherError',
    'DirectoryNotFound',
    'InvalidConfiguration',
    'CannotOpenDirectory',
    'InsufficientPermissions',
    'SystemResourcesUnavailable',
    'ChangeEvent',
    'EventType',
    'matches',
    'matches_any',
    'glob_to_regex',
    'Debouncer',
    'FileFilter',
    'FilterChain',
    'IgnoreList',
    'TransformRule',
    'FileTransformPredictor',
    'ChangeEmitter',
    'DirectoryEventHandler',
    'AsyncChangeStream',
    'WatcherConfiguration',
    'RecursiveWatchOptions',
    'DirectoryWatcher',
    'RecursiveDirectoryWatcher',
    'MultiDirectoryWatcher',
    'MultiRecursiveDirectoryWatcher',
]

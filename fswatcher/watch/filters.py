# fswatcher/watch/filters.py

"""
Composable path predicates and filter chains
"""
import re
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from ..utils.file_utils import (
    FILE_TYPE_EXTENSIONS,
    get_file_size,
    get_file_type,
    get_mime_type,
    get_modification_time,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FileFilter:
    """
    Boolean predicate over a path

    Filters are immutable; `and_`, `or_` and `not_` (or `&`, `|`, `~`)
    build new filters from existing ones.
    """

    def __init__(self, predicate: Callable[[Path], bool], description: str = "custom"):
        self._predicate = predicate
        self.description = description

    def matches(self, path: PathLike) -> bool:
        """
        Check if path satisfies this filter

        Args:
            path: Path to check

        Returns:
            True if path matches
        """
        try:
            return bool(self._predicate(Path(path)))
        except OSError as e:
            logger.debug(f"Filter '{self.description}' could not inspect {path}: {e}")
            return False

    __call__ = matches

    # Combinations

    def and_(self, other: 'FileFilter') -> 'FileFilter':
        return FileFilter(
            lambda p: self.matches(p) and other.matches(p),
            f"({self.description} and {other.description})",
        )

    def or_(self, other: 'FileFilter') -> 'FileFilter':
        return FileFilter(
            lambda p: self.matches(p) or other.matches(p),
            f"({self.description} or {other.description})",
        )

    def not_(self) -> 'FileFilter':
        return FileFilter(lambda p: not self.matches(p), f"not {self.description}")

    __and__ = and_
    __or__ = or_
    __invert__ = not_

    def __repr__(self):
        return f"FileFilter({self.description})"

    # Predefined filters

    @classmethod
    def file_extensions(cls, extensions: Iterable[str]) -> 'FileFilter':
        """
        Match files by extension (case-insensitive)

        Args:
            extensions: Extensions with or without the leading dot
        """
        wanted = {ext.lower().lstrip('.') for ext in extensions}
        return cls(
            lambda p: p.suffix.lower().lstrip('.') in wanted,
            f"extension in {sorted(wanted)}",
        )

    @classmethod
    def file_types(cls, types: Iterable[str]) -> 'FileFilter':
        """
        Match files whose type conforms to one of the given types

        Args:
            types: Category names ('image', 'video', 'audio', 'document',
                'archive', 'text'), MIME types ('image/png') or MIME
                wildcards ('image/*')
        """
        wanted = [t.lower() for t in types]

        def conforms(path: Path) -> bool:
            mime = (get_mime_type(path) or '').lower()
            major = mime.split('/', 1)[0] if mime else ''

            for file_type in wanted:
                if file_type in FILE_TYPE_EXTENSIONS:
                    if get_file_type(path) == file_type:
                        return True
                    # e.g. an image format missing from the extension table
                    if file_type in ('image', 'video', 'audio') and major == file_type:
                        return True
                elif file_type == 'text':
                    if major == 'text':
                        return True
                elif file_type.endswith('/*'):
                    if major and major == file_type[:-2]:
                        return True
                elif mime and mime == file_type:
                    return True
            return False

        return cls(conforms, f"type in {wanted}")

    @classmethod
    def image_files(cls) -> 'FileFilter':
        return cls.file_types(['image'])

    @classmethod
    def video_files(cls) -> 'FileFilter':
        return cls.file_types(['video'])

    @classmethod
    def audio_files(cls) -> 'FileFilter':
        return cls.file_types(['audio'])

    @classmethod
    def document_files(cls) -> 'FileFilter':
        return cls.file_types(['document'])

    @classmethod
    def file_name(cls, pattern: str, flags: int = 0) -> 'FileFilter':
        """
        Match files whose name contains a match for a regular expression

        Args:
            pattern: Regular expression, searched in the final path component
            flags: `re` flags
        """
        compiled = re.compile(pattern, flags)
        return cls(lambda p: compiled.search(p.name) is not None, f"name ~ {pattern!r}")

    @classmethod
    def file_size(cls, min_size: int = 0, max_size: Optional[int] = None) -> 'FileFilter':
        """
        Match files whose size lies in [min_size, max_size] bytes

        Files whose size cannot be read never match.
        """
        if max_size is not None and max_size < min_size:
            raise ValueError(f"Invalid size range: {min_size}..{max_size}")

        def in_range(path: Path) -> bool:
            size = get_file_size(path)
            if size is None:
                return False
            return size >= min_size and (max_size is None or size <= max_size)

        return cls(in_range, f"size in {min_size}..{max_size}")

    @classmethod
    def modified_within(cls, seconds: float) -> 'FileFilter':
        """Match files modified no more than `seconds` ago"""
        def recent(path: Path) -> bool:
            modified = get_modification_time(path)
            if modified is None:
                return False
            return (datetime.now() - modified).total_seconds() <= seconds

        return cls(recent, f"modified within {seconds}s")

    @classmethod
    def directories_only(cls) -> 'FileFilter':
        return cls(lambda p: p.is_dir(), "directories only")

    @classmethod
    def files_only(cls) -> 'FileFilter':
        return cls(lambda p: p.exists() and not p.is_dir(), "files only")

    @classmethod
    def custom(cls, predicate: Callable[[Path], bool], description: str = "custom") -> 'FileFilter':
        return cls(predicate, description)


class FilterChain:
    """
    Ordered, thread-safe collection of filters

    An empty chain matches every path under AND semantics (`matches`) and
    no path under OR semantics (`matches_any`).
    """

    def __init__(self, filters: Optional[Iterable[FileFilter]] = None):
        self._filters: List[FileFilter] = list(filters or [])
        self._lock = threading.Lock()

    def add(self, file_filter: FileFilter):
        """Append a filter to the chain"""
        with self._lock:
            self._filters.append(file_filter)
        logger.debug(f"Added filter: {file_filter.description}")

    def remove(self, file_filter: FileFilter) -> bool:
        """
        Remove a filter from the chain

        Returns:
            True if the filter was part of the chain
        """
        with self._lock:
            try:
                self._filters.remove(file_filter)
                return True
            except ValueError:
                return False

    def clear(self):
        """Remove all filters"""
        with self._lock:
            self._filters.clear()

    def snapshot(self) -> List[FileFilter]:
        """Copy of the current filters"""
        with self._lock:
            return list(self._filters)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._filters

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._filters)

    def __len__(self):
        return self.count

    def matches(self, path: PathLike) -> bool:
        """True if path matches every filter (always True for an empty chain)"""
        return all(f.matches(path) for f in self.snapshot())

    def matches_any(self, path: PathLike) -> bool:
        """True if path matches at least one filter (always False for an empty chain)"""
        return any(f.matches(path) for f in self.snapshot())

    def filter(self, paths: Iterable[PathLike]) -> List[Path]:
        """Paths matching every filter, in input order"""
        filters = self.snapshot()
        return [Path(p) for p in paths if all(f.matches(p) for f in filters)]

    def filter_any(self, paths: Iterable[PathLike]) -> List[Path]:
        """Paths matching at least one filter, in input order"""
        filters = self.snapshot()
        return [Path(p) for p in paths if any(f.matches(p) for f in filters)]

# fswatcher/watch/ignore.py

"""
Ignore registry and output prediction

The ignore list breaks feedback loops: a consumer that writes derived files
into a watched tree registers those outputs (explicitly, or through a
FileTransformPredictor) so the watcher does not report them as new changes.
"""
import re
import time
import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Set, Union

from .patterns import glob_to_regex, matches as glob_matches
from ..utils.file_utils import normalize_path

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
PathsLike = Union[PathLike, Iterable[PathLike]]


def _as_paths(paths: PathsLike) -> List[Path]:
    if isinstance(paths, (str, Path)):
        paths = [paths]
    return [normalize_path(p) for p in paths]


class IgnoreList:
    """
    Thread-safe registry of paths and patterns to suppress

    Holds three independent collections: explicitly ignored paths,
    predictively ignored paths (expected outputs that may not exist yet)
    and glob patterns matched against the final path component.
    """

    def __init__(self, ignored_files: Optional[Iterable[PathLike]] = None,
                 patterns: Optional[Iterable[str]] = None):
        self._ignored: Set[Path] = set(_as_paths(ignored_files or []))
        self._predictive: Set[Path] = set()
        self._patterns: List[str] = list(patterns or [])
        self._lock = threading.Lock()

    # Explicit ignores

    def add_ignored(self, paths: PathsLike):
        """Add one or more paths to the ignore list"""
        paths = _as_paths(paths)
        with self._lock:
            self._ignored.update(paths)
        logger.debug(f"Ignoring {len(paths)} path(s)")

    def remove_ignored(self, paths: PathsLike):
        """Stop ignoring one or more paths"""
        paths = _as_paths(paths)
        with self._lock:
            self._ignored.difference_update(paths)

    # Predictive ignores

    def add_predictive_ignore(self, paths: PathsLike):
        """Ignore paths that are expected to be created"""
        paths = _as_paths(paths)
        with self._lock:
            self._predictive.update(paths)
        logger.debug(f"Predictively ignoring: {[str(p) for p in paths]}")

    def remove_predictive_ignore(self, paths: PathsLike):
        """Stop predictively ignoring one or more paths"""
        paths = _as_paths(paths)
        with self._lock:
            self._predictive.difference_update(paths)

    # Pattern-based ignores

    def add_ignore_pattern(self, pattern: str):
        """Add a glob pattern, e.g. "*.tmp" or "node_modules" """
        with self._lock:
            self._patterns.append(pattern)

    def add_ignore_patterns(self, patterns: Iterable[str]):
        """Add multiple glob patterns"""
        patterns = list(patterns)
        with self._lock:
            self._patterns.extend(patterns)

    def remove_ignore_pattern(self, pattern: str):
        """Remove every occurrence of a glob pattern"""
        with self._lock:
            self._patterns = [p for p in self._patterns if p != pattern]

    # Queries

    def should_ignore(self, path: PathLike) -> bool:
        """
        Check if a path should be ignored

        Args:
            path: Path to check

        Returns:
            True if the path is ignored explicitly or predictively, or its
            name matches an ignore pattern
        """
        normalized = normalize_path(path)
        name = Path(path).name

        with self._lock:
            if normalized in self._ignored or normalized in self._predictive:
                return True
            return any(glob_matches(name, pattern) for pattern in self._patterns)

    @property
    def ignored_count(self) -> int:
        with self._lock:
            return len(self._ignored)

    @property
    def predictive_count(self) -> int:
        with self._lock:
            return len(self._predictive)

    @property
    def pattern_count(self) -> int:
        with self._lock:
            return len(self._patterns)

    @property
    def patterns(self) -> List[str]:
        with self._lock:
            return list(self._patterns)

    # Maintenance

    def cleanup(self) -> int:
        """
        Drop explicit ignores whose path no longer exists

        Predictive ignores are kept since their targets may not exist yet.

        Returns:
            Number of entries removed
        """
        with self._lock:
            existing = {p for p in self._ignored if p.exists()}
            removed = len(self._ignored) - len(existing)
            self._ignored = existing

        if removed:
            logger.info(f"Cleaned up {removed} stale ignore entries")
        return removed

    def clear(self):
        """Clear all ignore lists"""
        with self._lock:
            self._ignored.clear()
            self._predictive.clear()
            self._patterns.clear()

    def clear_ignored(self):
        with self._lock:
            self._ignored.clear()

    def clear_predictive(self):
        with self._lock:
            self._predictive.clear()

    def clear_patterns(self):
        with self._lock:
            self._patterns.clear()


@dataclass
class TransformRule:
    """
    Maps matching input files to the name of the file a processor will write

    The output template supports {name} (input name without extension),
    {ext} (input extension without dot), {timestamp} (epoch seconds) and
    {date} (YYYY-MM-DD). The input pattern is searched as a regular
    expression; a pattern that does not compile (such as "*.jpg") or a
    rule built with is_regex=False is matched as a whole-name glob.
    """
    input_pattern: str
    output_template: str
    format_change: bool = False
    is_regex: Optional[bool] = None
    compiled_pattern: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.is_regex is not False:
            try:
                self.compiled_pattern = re.compile(self.input_pattern)
                self.is_regex = True
                return
            except re.error as e:
                logger.debug(f"Pattern '{self.input_pattern}' is not a valid regex, using glob: {e}")

        self.is_regex = False
        self.compiled_pattern = re.compile(glob_to_regex(self.input_pattern), re.DOTALL)

    def matches(self, file_name: str) -> bool:
        return self.compiled_pattern.search(file_name) is not None

    def render(self, input_path: Path) -> Path:
        """Predicted output path for an input, in the input's directory"""
        output_name = (
            self.output_template
            .replace("{name}", input_path.stem)
            .replace("{ext}", input_path.suffix.lstrip('.'))
            .replace("{timestamp}", str(int(time.time())))
            .replace("{date}", date.today().isoformat())
        )
        return input_path.parent / output_name


class FileTransformPredictor:
    """
    Predicts output files based on input files and transformation rules
    """

    def __init__(self, rules: Union[TransformRule, Iterable[TransformRule]]):
        if isinstance(rules, TransformRule):
            rules = [rules]
        self.rules: List[TransformRule] = list(rules)

    def predict_output_files(self, input_path: PathLike) -> List[Path]:
        """
        Predict output files for a given input file

        Every matching rule contributes one prediction.

        Args:
            input_path: The input file path

        Returns:
            Predicted output file paths
        """
        input_path = Path(input_path)
        return [
            rule.render(input_path)
            for rule in self.rules
            if rule.matches(input_path.name)
        ]

    def predict_many(self, input_paths: Iterable[PathLike]) -> List[Path]:
        """Predict output files for multiple input files"""
        outputs = []
        for input_path in input_paths:
            outputs.extend(self.predict_output_files(input_path))
        return outputs

    # Convenience factories

    @classmethod
    def image_compression(cls, suffix: str = "_compressed") -> 'FileTransformPredictor':
        return cls(TransformRule(
            input_pattern=r".*\.(jpe?g|png|tiff?|bmp)$",
            output_template=f"{{name}}{suffix}.{{ext}}",
        ))

    @classmethod
    def format_conversion(cls, source: str, target: str) -> 'FileTransformPredictor':
        """
        Args:
            source: Source extension (regex fragment, e.g. "png" or "jpe?g")
            target: Target extension
        """
        return cls(TransformRule(
            input_pattern=rf".*\.{source}$",
            output_template=f"{{name}}.{target}",
            format_change=True,
            is_regex=True,
        ))

    @classmethod
    def thumbnail_generation(cls, prefix: str = "thumb_", size: str = "") -> 'FileTransformPredictor':
        size_part = f"_{size}" if size else ""
        return cls(TransformRule(
            input_pattern=r".*\.(jpe?g|png|gif|webp)$",
            output_template=f"{prefix}{{name}}{size_part}.{{ext}}",
        ))

    @classmethod
    def video_transcoding(cls, output_format: str = "mp4") -> 'FileTransformPredictor':
        return cls(TransformRule(
            input_pattern=r".*\.(mov|avi|wmv|flv|mkv)$",
            output_template=f"{{name}}.{output_format}",
            format_change=True,
        ))

    @classmethod
    def document_conversion(cls) -> 'FileTransformPredictor':
        return cls([
            TransformRule(
                input_pattern=r".*\.docx?$",
                output_template="{name}.pdf",
                format_change=True,
            ),
            TransformRule(
                input_pattern=r".*\.md$",
                output_template="{name}.html",
                format_change=True,
            ),
        ])

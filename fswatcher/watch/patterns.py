# fswatcher/watch/patterns.py

"""
Shell-style glob matching for single path components
"""
import re
import logging
from functools import lru_cache
from typing import Iterable, Pattern

logger = logging.getLogger(__name__)


def glob_to_regex(pattern: str) -> str:
    """
    Translate a glob pattern into an anchored regular expression

    Only `*` (zero or more characters) and `?` (exactly one character) are
    special; every other character is matched literally.

    Args:
        pattern: Glob pattern such as "*.tmp" or "node_modules"

    Returns:
        Regular expression source string
    """
    parts = []
    for char in pattern:
        if char == '*':
            parts.append('.*')
        elif char == '?':
            parts.append('.')
        else:
            parts.append(re.escape(char))
    return '^' + ''.join(parts) + '$'


@lru_cache(maxsize=1024)
def _compile(pattern: str) -> Pattern:
    return re.compile(glob_to_regex(pattern), re.DOTALL)


def matches(name: str, pattern: str) -> bool:
    """
    Check if a file or directory name matches a glob pattern

    Matching is anchored to the whole name and has no directory
    separator semantics.

    Args:
        name: Single path component
        pattern: Glob pattern

    Returns:
        True if name matches pattern
    """
    return _compile(pattern).match(name) is not None


def matches_any(name: str, patterns: Iterable[str]) -> bool:
    """Check if name matches at least one of the patterns"""
    return any(matches(name, pattern) for pattern in patterns)

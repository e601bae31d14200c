"""
File utilities for fswatcher
"""
import os
import mimetypes
from pathlib import Path
from typing import Optional, List, Union
from datetime import datetime
import logging

import magic

logger = logging.getLogger(__name__)


# File type detection
IMAGE_EXTENSIONS = {
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.tiff', '.tif',
    '.webp', '.heic', '.heif', '.raw', '.nef', '.cr2', '.arw',
    '.dng', '.orf', '.sr2', '.raf', '.rw2', '.pef', '.srw',
    '.ico', '.icns', '.svg', '.psd'
}

VIDEO_EXTENSIONS = {
    '.mp4', '.mov', '.avi', '.mkv', '.webm', '.flv', '.wmv',
    '.m4v', '.mpg', '.mpeg', '.3gp', '.mts', '.m2ts',
    '.vob', '.ogv', '.rm', '.rmvb', '.asf', '.f4v'
}

AUDIO_EXTENSIONS = {
    '.mp3', '.wav', '.flac', '.m4a', '.aac', '.ogg', '.wma',
    '.opus', '.ape', '.alac', '.aiff', '.aif', '.mid', '.midi', '.amr'
}

DOCUMENT_EXTENSIONS = {
    '.pdf', '.doc', '.docx', '.txt', '.rtf', '.odt', '.pages',
    '.xls', '.xlsx', '.csv', '.ods', '.numbers', '.ppt', '.pptx',
    '.odp', '.key', '.epub', '.html', '.htm', '.xml', '.json',
    '.yaml', '.yml', '.md'
}

ARCHIVE_EXTENSIONS = {
    '.zip', '.rar', '.7z', '.tar', '.gz', '.bz2', '.xz',
    '.tgz', '.tbz2', '.lz', '.lzma', '.z', '.lzh'
}

FILE_TYPE_EXTENSIONS = {
    'image': IMAGE_EXTENSIONS,
    'video': VIDEO_EXTENSIONS,
    'audio': AUDIO_EXTENSIONS,
    'document': DOCUMENT_EXTENSIONS,
    'archive': ARCHIVE_EXTENSIONS,
}

# libmagic answers for content it cannot classify
GENERIC_MIME_TYPES = {'application/octet-stream', 'inode/x-empty'}


def get_file_type(file_path: Union[str, Path]) -> str:
    """
    Determine file type from extension

    Args:
        file_path: Path to file

    Returns:
        File type: 'image', 'video', 'audio', 'document', 'archive', or 'other'
    """
    ext = Path(file_path).suffix.lower()

    for file_type, extensions in FILE_TYPE_EXTENSIONS.items():
        if ext in extensions:
            return file_type

    return 'other'


def get_mime_type(file_path: Union[str, Path]) -> Optional[str]:
    """
    Get MIME type of file

    Existing, non-empty files are identified from their content with
    libmagic. Anything else falls back to a guess from the extension.

    Args:
        file_path: Path to file

    Returns:
        MIME type string, or None when neither content nor extension is known
    """
    path = Path(file_path)

    try:
        if path.is_file() and path.stat().st_size > 0:
            mime_type = magic.Magic(mime=True).from_file(str(path))
            if mime_type and mime_type not in GENERIC_MIME_TYPES:
                return mime_type
    except (OSError, magic.MagicException) as e:
        logger.debug(f"python-magic error for {path}: {e}")

    mime_type, _ = mimetypes.guess_type(str(path), strict=False)
    return mime_type


def is_hidden(path: Union[str, Path]) -> bool:
    """Dot-files and dot-directories are hidden"""
    return Path(path).name.startswith('.')


def get_file_size(file_path: Union[str, Path]) -> Optional[int]:
    """
    Get file size in bytes

    Returns:
        File size in bytes, or None if it cannot be read
    """
    try:
        return Path(file_path).stat().st_size
    except OSError:
        return None


def get_modification_time(file_path: Union[str, Path]) -> Optional[datetime]:
    """Get last content modification time, or None if unavailable"""
    try:
        return datetime.fromtimestamp(Path(file_path).stat().st_mtime)
    except OSError:
        return None


def list_directory(directory: Union[str, Path], skip_hidden: bool = True) -> List[Path]:
    """
    List the immediate entries of a directory

    Args:
        directory: Directory to list
        skip_hidden: Leave out dot-files and dot-directories

    Returns:
        Entries sorted by name

    Raises:
        OSError: If the directory cannot be read
    """
    dir_path = Path(directory)
    entries = []

    with os.scandir(dir_path) as it:
        for entry in it:
            if skip_hidden and is_hidden(entry.name):
                continue
            entries.append(dir_path / entry.name)

    entries.sort(key=lambda p: p.name)
    return entries


def list_subdirectories(directory: Union[str, Path],
                        skip_hidden: bool = True,
                        follow_symlinks: bool = False) -> List[Path]:
    """
    List the immediate subdirectories of a directory

    Args:
        directory: Directory to list
        skip_hidden: Leave out dot-directories
        follow_symlinks: Include symlinks that point at directories

    Returns:
        Subdirectories sorted by name

    Raises:
        OSError: If the directory cannot be read
    """
    subdirectories = []

    for entry in list_directory(directory, skip_hidden=skip_hidden):
        if entry.is_symlink() and not follow_symlinks:
            continue
        if entry.is_dir():
            subdirectories.append(entry)

    return subdirectories


def normalize_path(path: Union[str, Path]) -> Path:
    """Absolute, lexically normalized path (symlinks are not resolved)"""
    return Path(os.path.abspath(os.path.expanduser(str(path))))

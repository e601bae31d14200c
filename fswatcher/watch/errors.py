# fswatcher/watch/errors.py

"""
Error taxonomy for directory watching
"""
import errno
from pathlib import Path
from typing import Optional, Union


class FSWatcherError(Exception):
    """Base exception for all watcher errors"""
    pass


class DirectoryNotFound(FSWatcherError):
    """Directory does not exist at the given path"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"Directory not found at path: {self.path}")


class InvalidConfiguration(FSWatcherError):
    """Invalid configuration, e.g. the target is not a directory"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Invalid configuration: {message}")


class CannotOpenDirectory(FSWatcherError):
    """Binding a change notification source to the directory failed"""

    def __init__(self, path: Union[str, Path], reason: Optional[str] = None):
        self.path = Path(path)
        self.reason = reason
        message = f"Cannot open directory at path: {self.path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InsufficientPermissions(FSWatcherError):
    """Not allowed to watch the directory"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(f"Insufficient permissions to watch directory: {self.path}")


class SystemResourcesUnavailable(FSWatcherError):
    """Descriptor or watch limits exhausted"""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason
        message = "System resources are unavailable for file system watching"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}
_RESOURCE_ERRNOS = {errno.EMFILE, errno.ENFILE, errno.ENOSPC, errno.ENOMEM}


def error_from_os_error(path: Union[str, Path], error: BaseException) -> FSWatcherError:
    """
    Map a failure raised while binding a watch to the error taxonomy

    Args:
        path: Directory that was being bound
        error: Exception raised by the observer

    Returns:
        Matching FSWatcherError instance
    """
    if isinstance(error, FSWatcherError):
        return error

    code = getattr(error, 'errno', None)
    if isinstance(error, PermissionError) or code in _PERMISSION_ERRNOS:
        return InsufficientPermissions(path)
    if code in _RESOURCE_ERRNOS:
        return SystemResourcesUnavailable(str(error))
    if isinstance(error, FileNotFoundError):
        return DirectoryNotFound(path)

    return CannotOpenDirectory(path, str(error))

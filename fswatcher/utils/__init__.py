"""
fswatcher utilities
"""
from .config import Config, WatchConfig, TransformConfig, load_config, save_config
from .logger import setup_logging, get_logger
from .file_utils import (
    get_file_type, get_mime_type, is_hidden, get_file_size,
    get_modification_time, list_directory, list_subdirectories,
    normalize_path
)

__all__ = [
    'Config', 'WatchConfig', 'TransformConfig', 'load_config', 'save_config',
    'setup_logging', 'get_logger',
    'get_file_type', 'get_mime_type', 'is_hidden', 'get_file_size',
    'get_modification_time', 'list_directory', 'list_subdirectories',
    'normalize_path',
]
